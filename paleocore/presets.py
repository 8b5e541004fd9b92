"""Sample cores used by ``paleocore load-samples``."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .averages import compute_lab_analysis
from .models import Core, Location, Section, SectionFossilRecord

SampleCore = Tuple[Core, List[Section]]


def _series(rows: Sequence[Tuple[float, float, float, float]]) -> List[dict]:
    # (depth cm, d18O, d13C, Mg/Ca)
    return [
        {
            "subsection": f"S{i + 1:02d}",
            "depth": depth,
            "delta18O": d18o,
            "delta13C": d13c,
            "mgCaRatio": mgca,
        }
        for i, (depth, d18o, d13c, mgca) in enumerate(rows)
    ]


def _section(core_id: str, name: str, depth: float, rows, **meta) -> Section:
    points = _series(rows)
    return Section(
        id=None,
        core_id=core_id,
        name=name,
        section_depth=depth,
        data_points=points,
        lab_analysis=compute_lab_analysis(points),
        **meta,
    )


def sample_cores() -> List[SampleCore]:
    rockall = Core(
        id="ODP-982A",
        name="Rockall Plateau Sediments",
        location=Location(lat=57.51, lon=-15.87),
        water_depth=1134,
        project="ODP Leg 162",
    )
    ontong = Core(
        id="ODP-806B",
        name="Ontong Java Plateau",
        location=Location(lat=0.32, lon=159.36),
        water_depth=2520,
        project="ODP Leg 130",
    )
    return [
        (
            rockall,
            [
                _section(
                    rockall.id, "Hole A, Section 1", 0.0,
                    [
                        (2.0, 3.41, 0.92, 1.62),
                        (12.0, 3.58, 0.85, 1.55),
                        (22.0, 4.12, 0.61, 1.21),
                        (32.0, 4.47, 0.44, 1.05),
                        (42.0, 4.38, 0.52, 1.09),
                        (52.0, 3.87, 0.77, 1.36),
                    ],
                    sample_interval=10.0,
                    recovery_date="1995-06-14",
                    epoch="Pleistocene",
                    geological_period="Glacial",
                    age_range="0-60 ka",
                    lithology="Nannofossil ooze with foraminifera",
                    munsell_color="10YR 6/2",
                    microfossil_records=[
                        SectionFossilRecord("N_pachyderma", "Abundant", "Good", "Sinistral coiling dominant."),
                    ],
                ),
                _section(
                    rockall.id, "Hole A, Section 2", 150.0,
                    [
                        (152.0, 3.12, 1.05, 1.88),
                        (162.0, 3.05, 1.11, 1.94),
                        (172.0, 3.22, 0.98, 1.79),
                        (182.0, 3.64, 0.80, 1.48),
                    ],
                    sample_interval=10.0,
                    recovery_date="1995-06-14",
                    epoch="Pleistocene",
                    geological_period="Interglacial",
                    age_range="115-130 ka",
                    lithology="Foraminiferal ooze",
                ),
            ],
        ),
        (
            ontong,
            [
                _section(
                    ontong.id, "Hole B, Section 1", 0.0,
                    [
                        (5.0, -1.62, 1.70, 4.98),
                        (15.0, -1.48, 1.64, 4.85),
                        (25.0, -1.21, 1.52, 4.60),
                        (35.0, -1.05, 1.49, 4.41),
                        (45.0, -1.30, 1.58, 4.66),
                    ],
                    sample_interval=10.0,
                    recovery_date="1990-02-03",
                    epoch="Holocene",
                    geological_period="Interglacial",
                    age_range="0-20 ka",
                    lithology="Foraminiferal nannofossil ooze",
                    microfossil_records=[
                        SectionFossilRecord("G_ruber", "Common", "Moderate"),
                    ],
                ),
            ],
        ),
    ]


__all__ = ["SampleCore", "sample_cores"]
