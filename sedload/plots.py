"""
sedload.plots - Per-site flow, concentration and load charts
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import matplotlib.pyplot as plt
import pandas as pd
from matplotlib.dates import DateFormatter, MonthLocator
from matplotlib.ticker import FuncFormatter

if TYPE_CHECKING:
    from .batch import BatchResult

FLOW_COLOR = "blue"
CONC_COLOR = "darkgoldenrod"
LOAD_COLOR = "coral"
SAMPLE_COLOR = "aquamarine"


def apply_sedload_style():
    """Apply the standard chart style."""
    plt.rcParams.update({
        "figure.dpi": 100,
        "figure.facecolor": "white",
        "axes.facecolor": "white",
        "axes.grid": True,
        "grid.alpha": 0.3,
        "font.size": 10,
    })


def _format_date_axis(ax, months: int = 3) -> None:
    ax.xaxis.set_major_locator(MonthLocator(interval=months))
    ax.xaxis.set_major_formatter(DateFormatter("%b %Y"))
    ax.set_xlabel("Date", fontsize=11)


def _comma_axis(ax) -> None:
    ax.yaxis.set_major_formatter(FuncFormatter(lambda v, _: f"{v:,.0f}"))


def _title(ax, text: str, site: str) -> None:
    ax.set_title(f"{text}\n{site}", fontsize=12, fontweight="bold")


def plot_flow(
    records: pd.DataFrame,
    site: str,
    flow_divisor: float = 1000.0,
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (12, 8),
) -> plt.Figure:
    """Plot the cleaned flow series (L/s shown as m³/s by default)."""
    apply_sedload_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(records["timestamp"], records["flow"] / flow_divisor, color=FLOW_COLOR, linewidth=0.4)
    ax.set_ylabel("Flow (m³/s)", fontsize=11)
    _comma_axis(ax)
    _format_date_axis(ax)
    _title(ax, "Flow", site)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_predicted_concentration(
    records: pd.DataFrame,
    site: str,
    flow_divisor: float = 1000.0,
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (12, 8),
) -> plt.Figure:
    """Plot flow with the predicted SSC on a secondary axis."""
    apply_sedload_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(records["timestamp"], records["flow"] / flow_divisor, color=FLOW_COLOR, linewidth=0.4, label="Flow")
    ax.set_ylabel("Flow (m³/s)", fontsize=11)
    _comma_axis(ax)

    ax2 = ax.twinx()
    ax2.plot(records["timestamp"], records["predicted_conc"], color=CONC_COLOR, linewidth=0.6, label="Predicted SSC")
    ax2.set_ylabel("SSC (mg/L)", fontsize=11)
    ax2.grid(False)

    _format_date_axis(ax)
    _title(ax, "Flow and Predicted Suspended Sediment Concentration", site)
    fig.legend(loc="upper right", fontsize=9)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_cumulative_load(
    records: pd.DataFrame,
    site: str,
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (12, 8),
) -> plt.Figure:
    """Plot predicted SSC with the cumulative sediment load on a secondary axis."""
    apply_sedload_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(records["timestamp"], records["predicted_conc"], color=CONC_COLOR, linewidth=0.6, label="Predicted SSC")
    ax.set_ylabel("SSC (mg/L)", fontsize=11)
    ax.set_ylim(bottom=0)

    ax2 = ax.twinx()
    ax2.plot(records["timestamp"], records["cumulative_load"], color=LOAD_COLOR, linewidth=1.2, label="Cumulative load")
    ax2.set_ylabel("Cumulative sediment (t)", fontsize=11)
    ax2.set_ylim(bottom=0)
    ax2.grid(False)

    total = records["cumulative_load"].iloc[-1] if len(records) else 0.0
    ax.annotate(
        f"Total load: {total:,.1f} t",
        xy=(0.02, 0.98),
        xycoords="axes fraction",
        fontsize=9,
        ha="left",
        va="top",
        bbox=dict(boxstyle="round", facecolor="white", alpha=0.8),
    )

    _format_date_axis(ax)
    _title(ax, "Cumulative Suspended Sediment Load", site)
    fig.legend(loc="upper right", fontsize=9)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_measured_vs_predicted(
    records: pd.DataFrame,
    samples: pd.DataFrame,
    site: str,
    save_path: Optional[str] = None,
    figsize: Tuple[int, int] = (12, 8),
) -> plt.Figure:
    """Overlay measured SSC spot samples on the predicted concentration series."""
    apply_sedload_style()
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(records["timestamp"], records["predicted_conc"], color=CONC_COLOR, linewidth=0.6, label="Predicted SSC")
    if samples is not None and not samples.empty:
        ax.scatter(
            samples["timestamp"],
            samples["concentration"],
            s=12,
            c=SAMPLE_COLOR,
            edgecolors="darkslategray",
            linewidth=0.5,
            zorder=5,
            label=f"Measured SSC (n={len(samples)})",
        )
    ax.set_ylabel("SSC (mg/L)", fontsize=11)
    ax.set_ylim(bottom=0)

    _format_date_axis(ax)
    _title(ax, "Predicted and Measured Suspended Sediment Concentration", site)
    ax.legend(loc="upper right", fontsize=9)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def site_figures(batch: "BatchResult", site: str, flow_divisor: float = 1000.0) -> Dict[str, plt.Figure]:
    """
    Build the four standard charts for one processed site.

    Returns
    -------
    dict
        ``{"FLOW_<site>": fig, "SSC_<site>": fig, "CUMSSC_<site>": fig,
        "CUMSSC2_<site>": fig}``; empty if the site has no load records.
    """
    result = batch.results.get(site)
    if result is None or result.records.empty:
        return {}

    records = result.records
    samples = None
    if not batch.concentration.empty:
        conc = batch.concentration
        samples = conc.loc[(conc["site"] == site) & (conc["kind"] == "SSC")]

    return {
        f"FLOW_{site}": plot_flow(records, site, flow_divisor),
        f"SSC_{site}": plot_predicted_concentration(records, site, flow_divisor),
        f"CUMSSC_{site}": plot_cumulative_load(records, site),
        f"CUMSSC2_{site}": plot_measured_vs_predicted(records, samples, site),
    }


def save_site_figures(batch: "BatchResult", output_dir: str, flow_divisor: float = 1000.0) -> Dict[str, str]:
    """Render and save every site's charts as PNG; returns name -> path."""
    os.makedirs(output_dir, exist_ok=True)
    paths: Dict[str, str] = {}
    for site in batch.results:
        for name, fig in site_figures(batch, site, flow_divisor).items():
            path = os.path.join(output_dir, f"{name}.png")
            fig.savefig(path, dpi=150, bbox_inches="tight")
            plt.close(fig)
            paths[name] = path
    return paths
