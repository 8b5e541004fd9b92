from __future__ import annotations

from typing import Iterable, Mapping, Any
import math

import numpy as np

from .constants import LAB_ANALYSIS_KEYS


def _is_finite_number(v: Any) -> bool:
    # bool is an int subclass but never a measurement
    if isinstance(v, bool) or not isinstance(v, (int, float, np.integer, np.floating)):
        return False
    return math.isfinite(float(v))


def compute_lab_analysis(
    data_points: Iterable[Mapping[str, Any]],
    keys: Iterable[str] = LAB_ANALYSIS_KEYS,
) -> dict[str, float]:
    """Mean of every finite numeric value per proxy key.

    A key only appears in the result when at least one point contributes a
    finite number for it, so an empty series yields ``{}``.  Always computed
    from the whole series; callers never patch a previous result.
    """
    points = list(data_points)
    keys = tuple(keys)
    if not points:
        return {}
    sums = np.zeros(len(keys), dtype=float)
    counts = np.zeros(len(keys), dtype=int)
    for point in points:
        for i, key in enumerate(keys):
            v = point.get(key)
            if _is_finite_number(v):
                sums[i] += float(v)
                counts[i] += 1
    return {key: float(sums[i] / counts[i]) for i, key in enumerate(keys) if counts[i] > 0}


__all__ = ["compute_lab_analysis"]
