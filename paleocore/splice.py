from __future__ import annotations

from typing import Iterable, List, Mapping, Optional
import math

from .models import DataPoint, Section, SpliceInterval


def _age(point: Mapping) -> Optional[float]:
    a = point.get("age")
    if isinstance(a, bool) or not isinstance(a, (int, float)) or not math.isfinite(a):
        return None
    return float(a)


def build_composite_splice(
    intervals: Mapping[str, SpliceInterval],
    sections: Iterable[Section],
) -> List[DataPoint]:
    """Collect calibrated points inside each section's age window.

    Bounds are inclusive and may be given in either order.  A section without
    an interval, or with a missing bound, contributes nothing.  Each point is
    tagged with ``sectionId`` and the result is sorted by age.
    """
    out: List[DataPoint] = []
    for section in sections:
        iv = intervals.get(section.id)
        if iv is None or iv.start_age is None or iv.end_age is None:
            continue
        lo, hi = min(iv.start_age, iv.end_age), max(iv.start_age, iv.end_age)
        for p in section.data_points:
            age = _age(p)
            if age is not None and lo <= age <= hi:
                out.append({**p, "sectionId": section.id})
    out.sort(key=lambda p: p["age"])
    return out


__all__ = ["build_composite_splice"]
