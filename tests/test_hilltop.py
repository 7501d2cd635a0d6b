"""Tests for sedload.hilltop (measurement retrieval)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd
import pytest
import requests

from sedload.errors import MeasurementSourceError
from sedload.hilltop import (
    SAMPLE_COLUMNS,
    CsvMeasurementSource,
    HilltopClient,
    load_samples,
    normalize_measurement_name,
)

SITE_LIST_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<HilltopServer>
  <Agency>HBRC</Agency>
  <Site Name="Esk River at Waipunga Bridge"/>
  <Site Name="Tutaekuri River at Puketapu"/>
</HilltopServer>"""

GET_DATA_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Hilltop>
  <Agency>HBRC</Agency>
  <Measurement SiteName="Esk River at Waipunga Bridge">
    <DataSource Name="Flow" NumItems="1"/>
    <Data DateFormat="Calendar" NumItems="1">
      <E><T>2020-01-01T00:00:00</T><I1>1000</I1></E>
      <E><T>2020-01-01T00:15:00</T><I1>1200</I1></E>
    </Data>
  </Measurement>
</Hilltop>"""

ERROR_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<Hilltop><Error>No data</Error></Hilltop>"""


def _session(*payloads: bytes) -> MagicMock:
    session = MagicMock()
    responses = []
    for payload in payloads:
        response = MagicMock()
        response.content = payload
        response.raise_for_status.return_value = None
        responses.append(response)
    session.get.side_effect = responses
    return session


class TestHilltopClient:
    """Parsing Hilltop Server replies."""

    def test_site_list(self) -> None:
        client = HilltopClient("https://example.org/data.hts", session=_session(SITE_LIST_XML))
        assert client.site_list() == ["Esk River at Waipunga Bridge", "Tutaekuri River at Puketapu"]

    def test_get_data(self) -> None:
        session = _session(GET_DATA_XML)
        client = HilltopClient("https://example.org/data.hts", session=session)
        df = client.get_data("Esk River at Waipunga Bridge", "Flow", "2020-01-01", "2020-01-02")

        assert df["value"].tolist() == ["1000", "1200"]
        assert df["timestamp"].iloc[1] == pd.Timestamp("2020-01-01 00:15")

        params = session.get.call_args.kwargs["params"]
        assert params["Service"] == "Hilltop"
        assert params["Request"] == "GetData"
        assert params["From"] == "2020-01-01T00:00:00"

    def test_error_reply_is_empty(self) -> None:
        client = HilltopClient("https://example.org/data.hts", session=_session(ERROR_XML))
        assert client.get_data("X", "Flow", "2020-01-01", "2020-01-02").empty

    def test_transport_failure(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        client = HilltopClient("https://example.org/data.hts", session=session)
        with pytest.raises(MeasurementSourceError, match="refused"):
            client.site_list()

    def test_malformed_xml(self) -> None:
        client = HilltopClient("https://example.org/data.hts", session=_session(b"<not xml"))
        with pytest.raises(MeasurementSourceError, match="malformed"):
            client.site_list()


class TestLoadSamples:
    """Combining sites and measurements into one frame."""

    def test_from_client(self, caplog: pytest.LogCaptureFixture) -> None:
        session = _session(GET_DATA_XML, ERROR_XML, ERROR_XML)
        client = HilltopClient("https://example.org/data.hts", session=session)
        with caplog.at_level("WARNING"):
            samples = load_samples(
                client,
                sites=["Esk River at Waipunga Bridge", "Dry Creek"],
                measurements=["Flow"],
            )
        assert list(samples.columns) == SAMPLE_COLUMNS
        assert samples["site"].unique().tolist() == ["Esk River at Waipunga Bridge"]
        assert "No data for site Dry Creek" in caplog.text

    def test_source_error_logged_not_raised(self) -> None:
        source = MagicMock()
        source.get_data.side_effect = MeasurementSourceError("timeout")
        samples = load_samples(source, sites=["A"], measurements=["Flow"])
        assert samples.empty
        assert list(samples.columns) == SAMPLE_COLUMNS

    def test_from_csv(self, samples_csv: Path) -> None:
        source = CsvMeasurementSource(samples_csv)
        assert source.site_list() == ["A", "B", "C"]
        samples = load_samples(source, start="2020-01-01", end="2020-01-02")
        counts = samples.groupby("measurement").size().to_dict()
        assert counts == {"Flow": 12, "Suspended Sediment Concentration": 4}

    def test_measurement_name_normalised(self) -> None:
        assert normalize_measurement_name("Suspended Solids [Suspended Solids]") == "Suspended Solids"
        assert normalize_measurement_name("Flow") == "Flow"


class TestCsvMeasurementSource:
    """Flat CSV exports."""

    def test_hilltop_export_headers(self, tmp_path: Path) -> None:
        path = tmp_path / "export.csv"
        path.write_text(
            "SiteName,Measurement,SampleTaken,Value\n"
            "A,Suspended Solids [Suspended Solids],2020-01-01 00:00,<5\n"
        )
        source = CsvMeasurementSource(path)
        df = source.get_data("A", "Suspended Solids", "2019-07-01", "2020-07-01")
        assert df["value"].tolist() == ["<5"]

    def test_missing_columns(self, tmp_path: Path) -> None:
        path = tmp_path / "export.csv"
        path.write_text("site,value\nA,1\n")
        with pytest.raises(ValueError, match="missing column"):
            CsvMeasurementSource(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            CsvMeasurementSource(tmp_path / "none.csv")
