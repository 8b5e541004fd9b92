from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence
import numpy as np
import matplotlib
matplotlib.use("Agg")  # headless
import matplotlib.pyplot as plt

from .constants import COMMON_DATA_KEYS, LAB_ANALYSIS_KEYS
from .models import PaleoEvent, Section


def axis_label(key: str) -> str:
    return COMMON_DATA_KEYS.get(key, key)


def present_proxies(sections: Iterable[Section]) -> List[str]:
    """Lab-analysis proxies carried by at least one point, in canonical order."""
    seen = set()
    for s in sections:
        for p in s.data_points:
            seen.update(k for k, v in p.items() if isinstance(v, (int, float)) and not isinstance(v, bool))
    return [k for k in LAB_ANALYSIS_KEYS if k in seen]


def _xy(points: Sequence[Mapping], x_key: str, y_key: str) -> tuple[np.ndarray, np.ndarray]:
    xs, ys = [], []
    for p in points:
        x, y = p.get(x_key), p.get(y_key)
        if isinstance(x, (int, float)) and isinstance(y, (int, float)):
            xs.append(float(x)); ys.append(float(y))
    order = np.argsort(xs, kind="stable")
    return np.asarray(xs)[order], np.asarray(ys)[order]


def _style_axes(ax: plt.Axes, x_key: str, proxy: str) -> None:
    ax.set_xlabel(axis_label(x_key))
    ax.set_ylabel(axis_label(proxy))
    # age grows to the left; d18O is drawn with heavier (colder) values down
    if x_key == "age":
        ax.invert_xaxis()
    if proxy == "delta18O":
        ax.invert_yaxis()
    ax.grid(True, alpha=0.35)


def fig_section_proxy(
    section: Section,
    proxy: str,
    x_key: str = "depth",
    events: Optional[Sequence[PaleoEvent]] = None,
) -> plt.Figure:
    """Single-section proxy curve; ``events`` are shaded when plotting vs age."""
    x, y = _xy(section.data_points, x_key, proxy)
    fig, ax = plt.subplots(figsize=(8.27, 5.0))
    ax.plot(x, y, marker="o", ms=3, lw=1.2, label=section.name)
    if events and x_key == "age":
        for ev in events:
            ax.axvspan(ev.start_age, ev.end_age, alpha=0.15, ec="none")
            ax.text((ev.start_age + ev.end_age) / 2, 1.0, ev.event_name, transform=ax.get_xaxis_transform(),
                    ha="center", va="bottom", fontsize=7, rotation=90)
    _style_axes(ax, x_key, proxy)
    ax.set_title(f"{section.name}: {axis_label(proxy)}")
    if x.size == 0:
        ax.text(0.5, 0.5, "No data", transform=ax.transAxes, ha="center", va="center")
    fig.tight_layout()
    return fig


def fig_multi_section(
    sections: Sequence[Section],
    proxy: str,
    x_key: str = "depth",
    splice: Optional[Sequence[Mapping]] = None,
) -> plt.Figure:
    """All sections of a core on one axis, optionally with the composite splice."""
    fig, ax = plt.subplots(figsize=(11.69, 6.0))
    for s in sections:
        x, y = _xy(s.data_points, x_key, proxy)
        if x.size:
            ax.plot(x, y, lw=1.0, alpha=0.8, label=s.name)
    if splice:
        x, y = _xy(splice, "age", proxy)
        if x.size and x_key == "age":
            ax.plot(x, y, color="black", lw=2.0, label="Composite splice")
    _style_axes(ax, x_key, proxy)
    ax.set_title(f"{axis_label(proxy)} vs {axis_label(x_key)}")
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="best", fontsize=8)
    fig.tight_layout()
    return fig


def render_section_chart(outdir: Path, section: Section, proxy: str, x_key: str = "depth",
                         events: Optional[Sequence[PaleoEvent]] = None) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    fig = fig_section_proxy(section, proxy, x_key, events)
    safe = "".join(ch if ch.isalnum() else "_" for ch in f"{section.name}_{proxy}_{x_key}")
    out = outdir / f"{safe}.png"
    fig.savefig(out, dpi=150, format="png")
    plt.close(fig)
    return out


__all__ = [
    "axis_label",
    "present_proxies",
    "fig_section_proxy",
    "fig_multi_section",
    "render_section_chart",
]
