"""
sedload.hilltop - Measurement retrieval from Hilltop archives
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import ClassVar, Dict, List, Optional, Sequence

import pandas as pd
import requests

from sedload.errors import MeasurementSourceError

logger = logging.getLogger(__name__)

SAMPLE_COLUMNS = ["timestamp", "site", "measurement", "value"]

DEFAULT_MEASUREMENTS = (
    "Suspended Solids [Suspended Solids]",
    "Suspended Sediment Concentration",
    "Flow",
)
DEFAULT_START = "2019-07-01 00:00:00"
DEFAULT_END = "2020-07-01 00:00:00"

_DATASOURCE_SUFFIX = re.compile(r"\s*\[[^\]]*\]\s*$")


def normalize_measurement_name(name: str) -> str:
    """Drop a trailing ``[DataSource]`` qualifier from a Hilltop measurement name."""
    return _DATASOURCE_SUFFIX.sub("", str(name)).strip()


def _empty_series() -> pd.DataFrame:
    return pd.DataFrame({"timestamp": pd.Series(dtype="datetime64[ns]"), "value": pd.Series(dtype=object)})


class HilltopClient:
    """Client for the Hilltop Server HTTP interface.

    Parameters
    ----------
    base_url : str
        Service endpoint, e.g. ``"https://data.hbrc.govt.nz/EnviroData/EMAR.hts"``.
    timeout : int
        Request timeout in seconds.
    session : requests.Session, optional
        Session to reuse connections across many site requests.
    """

    DATE_FORMAT: ClassVar[str] = "%Y-%m-%dT%H:%M:%S"

    def __init__(self, base_url: str, timeout: int = 60, session: Optional[requests.Session] = None):
        self._base_url = base_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _request(self, params: Dict[str, str]) -> ET.Element:
        query = {"Service": "Hilltop"}
        query.update(params)
        try:
            response = self._session.get(self._base_url, params=query, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise MeasurementSourceError(f"Hilltop request {params.get('Request')} failed: {exc}") from exc

        try:
            return ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise MeasurementSourceError(f"Hilltop returned malformed XML: {exc}") from exc

    def site_list(self) -> List[str]:
        """Names of all sites in the archive."""
        root = self._request({"Request": "SiteList"})
        return [s.get("Name") for s in root.iter("Site") if s.get("Name")]

    def get_data(self, site: str, measurement: str, start: str, end: str) -> pd.DataFrame:
        """
        Fetch one measurement series for one site.

        Returns
        -------
        pd.DataFrame
            Columns ``timestamp`` and ``value`` (raw text).  Empty if Hilltop
            reports an error, typically "No data" for the window.

        Raises
        ------
        MeasurementSourceError
            On transport failure or an unparseable reply.
        """
        root = self._request(
            {
                "Request": "GetData",
                "Site": site,
                "Measurement": measurement,
                "From": pd.Timestamp(start).strftime(self.DATE_FORMAT),
                "To": pd.Timestamp(end).strftime(self.DATE_FORMAT),
            }
        )

        error = root.find(".//Error")
        if error is not None:
            logger.debug("Hilltop: %s / %s: %s", site, measurement, (error.text or "").strip())
            return _empty_series()

        times, values = [], []
        for entry in root.iter("E"):
            t = entry.findtext("T")
            v = entry.findtext("I1")
            if t is None or v is None:
                continue
            times.append(t.strip())
            values.append(v.strip())

        if not times:
            return _empty_series()

        return pd.DataFrame(
            {"timestamp": pd.to_datetime(times, errors="coerce"), "value": values}
        ).dropna(subset=["timestamp"])

    def __repr__(self) -> str:
        return f"HilltopClient(base_url='{self._base_url}')"


class CsvMeasurementSource:
    """Measurement source backed by a flat CSV export.

    The CSV needs columns ``timestamp``, ``site``, ``measurement`` and
    ``value``.  The Hilltop export headers ``SampleTaken``, ``SiteName``
    and ``Measurement`` are accepted as aliases.
    """

    COLUMN_ALIASES: ClassVar[Dict[str, str]] = {
        "sampletaken": "timestamp",
        "datetime": "timestamp",
        "time": "timestamp",
        "sitename": "site",
        "site": "site",
        "measurement": "measurement",
        "value": "value",
        "timestamp": "timestamp",
    }

    def __init__(self, path: str | Path):
        self._path = Path(path)
        if not self._path.exists():
            raise FileNotFoundError(f"Sample CSV not found: {self._path}")
        df = pd.read_csv(self._path, dtype=str)
        df = df.rename(columns=lambda c: self.COLUMN_ALIASES.get(str(c).strip().lower(), c))
        missing = [c for c in SAMPLE_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Sample CSV {self._path} is missing column(s): {missing}")
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
        df["measurement_key"] = df["measurement"].map(normalize_measurement_name)
        self._data = df.dropna(subset=["timestamp"])

    def site_list(self) -> List[str]:
        return sorted(self._data["site"].dropna().unique().tolist())

    def get_data(self, site: str, measurement: str, start: str, end: str) -> pd.DataFrame:
        df = self._data
        mask = (
            (df["site"] == site)
            & (df["measurement_key"] == normalize_measurement_name(measurement))
            & (df["timestamp"] >= pd.Timestamp(start))
            & (df["timestamp"] <= pd.Timestamp(end))
        )
        return df.loc[mask, ["timestamp", "value"]].reset_index(drop=True)

    def __repr__(self) -> str:
        return f"CsvMeasurementSource(path='{self._path}')"


def load_samples(
    source,
    sites: Optional[Sequence[str]] = None,
    measurements: Sequence[str] = DEFAULT_MEASUREMENTS,
    start: str = DEFAULT_START,
    end: str = DEFAULT_END,
) -> pd.DataFrame:
    """
    Pull every requested measurement for every site into one long-form frame.

    Parameters
    ----------
    source : HilltopClient or CsvMeasurementSource
        Anything with ``site_list()`` and ``get_data(site, measurement, start, end)``.
    sites : sequence of str, optional
        Sites to fetch; defaults to ``source.site_list()``.
    measurements : sequence of str
        Measurement names as the source knows them.
    start, end : str
        Date window.

    Returns
    -------
    pd.DataFrame
        Columns ``timestamp``, ``site``, ``measurement`` (data-source suffix
        removed) and ``value`` (raw text).  Sites with no data are logged and
        left out.
    """
    if sites is None:
        sites = source.site_list()

    frames = []
    for site in sites:
        site_frames = []
        for measurement in measurements:
            try:
                data = source.get_data(site, measurement, start, end)
            except MeasurementSourceError as exc:
                logger.error("%s / %s: %s", site, measurement, exc)
                continue
            if data.empty:
                continue
            site_frames.append(
                data.assign(site=site, measurement=normalize_measurement_name(measurement))
            )

        n_rows = sum(len(f) for f in site_frames)
        logger.info("Data for site %s: %d series, %d values", site, len(site_frames), n_rows)
        if not site_frames:
            logger.warning("No data for site %s", site)
            continue
        frames.extend(site_frames)

    if not frames:
        return pd.DataFrame(columns=SAMPLE_COLUMNS)

    samples = pd.concat(frames, ignore_index=True)[SAMPLE_COLUMNS]
    return samples.sort_values(["site", "measurement", "timestamp"]).reset_index(drop=True)
