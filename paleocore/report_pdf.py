from __future__ import annotations
from matplotlib.backends.backend_pdf import PdfPages
import datetime, textwrap
import matplotlib.pyplot as plt
from pathlib import Path
from typing import Mapping, Optional, Sequence

from . import visuals
from .models import Core, Microfossil, Section

# -------- Visual style ------------------------------------------------------
BRAND = {
    "font":  "DejaVu Sans",
    "accent":"#0E7490",   # cyan-700
    "muted": "#6B7280",   # gray-500
    "grid":  "#E5E7EB",   # gray-200
}

def _apply_matplotlib_style() -> None:
    plt.rcParams.update({
        "figure.dpi": 120,
        "savefig.dpi": 120,
        "font.family": BRAND["font"],
        "font.size": 10,
        "axes.titlesize": 13,
        "axes.titleweight": "bold",
        "axes.grid": True,
        "grid.color": BRAND["grid"],
        "axes.spines.top": False,
        "axes.spines.right": False,
        "legend.frameon": False,
    })

_apply_matplotlib_style()

A4 = (8.27, 11.69)


def _ascii(s: str) -> str:
    # DejaVu lacks a few sub/superscript glyphs used in proxy labels
    return (s.replace("¹⁸", "18").replace("¹³", "13").replace("¹⁴", "14")
             .replace("₈₆", "86").replace("‰", "permil"))


def _fig_text(title: str, lines: list[str]) -> plt.Figure:
    """A4 text page; long lines are wrapped and overflow is cut at the margin."""
    fig = plt.figure(figsize=A4)
    ax = fig.add_axes([0, 0, 1, 1]); ax.axis("off")
    fig.text(0.08, 0.97, title, ha="left", va="top", fontsize=14, weight="bold", color=BRAND["accent"])
    y = 0.92
    for raw in lines:
        wrapped = textwrap.fill(_ascii(raw), width=90) if raw else ""
        n = max(1, wrapped.count("\n") + 1)
        ax.text(0.08, y, wrapped, va="top", ha="left", fontsize=9)
        y -= 0.02 * n + 0.006
        if y < 0.06:
            ax.text(0.08, 0.04, "(truncated)", fontsize=8, color=BRAND["muted"])
            break
    return fig


def _fig_cover(core: Core, sections: Sequence[Section]) -> plt.Figure:
    L = [
        f"Core ID: {core.id}",
        f"Name: {core.name}",
        f"Project: {core.project}",
        f"Location: {core.location.lat:.4f}, {core.location.lon:.4f}",
        f"Water depth: {core.water_depth} m",
        f"Sections: {len(sections)}",
        "",
        f"Generated: {datetime.datetime.now().isoformat(timespec='seconds')}",
    ]
    for s in sections:
        L.append(f"  - {s.name}: {s.section_depth} cmbsf, {s.epoch or 'n/a'} ({s.geological_period})")
    return _fig_text(f"PaleoCore report: {core.id}", L)


def _section_page(section: Section, fossils_by_id: Mapping[str, Microfossil]) -> plt.Figure:
    L = [
        f"Depth: {section.section_depth} cmbsf    Sample interval: {section.sample_interval or 'n/a'} cm",
        f"Recovered: {section.recovery_date or 'n/a'}    Collector: {section.collector or 'n/a'}",
        f"Epoch: {section.epoch or 'n/a'}    Period: {section.geological_period}    Age range: {section.age_range or 'n/a'}",
        f"Lithology: {section.lithology or 'n/a'}    Munsell: {section.munsell_color or 'n/a'}"
        f"    Grain size: {section.grain_size or 'n/a'}",
        f"Data points: {len(section.data_points)}",
        "",
        "Lab analysis (section means):",
    ]
    if section.lab_analysis:
        for k, v in section.lab_analysis.items():
            L.append(f"  - {visuals.axis_label(k)}: {v:.4g}")
    else:
        L.append("  - none")
    L.append("")
    L.append("Microfossil records:")
    if section.microfossil_records:
        for r in section.microfossil_records:
            f = fossils_by_id.get(r.fossil_id)
            name = f.display_name if f else r.fossil_id
            obs = f" - {r.observations}" if r.observations else ""
            L.append(f"  - {name}: {r.abundance}, {r.preservation} preservation{obs}")
    else:
        L.append("  - none")
    if section.summary:
        L.append("")
        L.append("Summary:")
        L.extend(p for p in section.summary.splitlines() if p.strip())
    return _fig_text(f"Section: {section.name}", L)


def build_core_report_pdf(
    core: Core,
    sections: Sequence[Section],
    microfossils: Sequence[Microfossil],
    pdf_path: Path,
    splice: Optional[Sequence[Mapping]] = None,
    synthesis_proxy: Optional[str] = None,
) -> Path:
    """Cover, then one text page and proxy charts per section, then synthesis.

    The synthesis page (all sections vs age, composite splice drawn on top)
    is added when any section carries ages.
    """
    pdf_path = Path(pdf_path); pdf_path.parent.mkdir(parents=True, exist_ok=True)
    by_id = {f.id: f for f in microfossils}
    with PdfPages(pdf_path) as pdf:
        pdf.savefig(_fig_cover(core, sections)); plt.close()
        for s in sections:
            pdf.savefig(_section_page(s, by_id)); plt.close()
            for proxy in visuals.present_proxies([s]):
                pdf.savefig(visuals.fig_section_proxy(s, proxy)); plt.close()
        aged = [s for s in sections if any(p.get("age") is not None for p in s.data_points)]
        if aged:
            proxies = visuals.present_proxies(aged)
            proxy = synthesis_proxy or (proxies[0] if proxies else None)
            if proxy:
                pdf.savefig(visuals.fig_multi_section(aged, proxy, x_key="age", splice=splice)); plt.close()
    return pdf_path


__all__ = ["build_core_report_pdf"]
