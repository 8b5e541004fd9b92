import math

import pytest

from paleocore.averages import compute_lab_analysis


def test_mean_per_proxy():
    pts = [
        {"subsection": "a", "delta18O": 3.0, "mgCaRatio": 1.0},
        {"subsection": "b", "delta18O": 4.0},
        {"subsection": "c", "delta18O": 5.0, "mgCaRatio": 2.0},
    ]
    la = compute_lab_analysis(pts)
    assert la["delta18O"] == pytest.approx(4.0)
    assert la["mgCaRatio"] == pytest.approx(1.5)
    assert "tex86" not in la


def test_non_numeric_values_are_ignored():
    pts = [
        {"subsection": "a", "delta13C": True},
        {"subsection": "b", "delta13C": float("nan")},
        {"subsection": "c", "delta13C": "1.0"},
        {"subsection": "d", "delta13C": 2.0},
        {"subsection": "e", "delta13C": math.inf},
    ]
    assert compute_lab_analysis(pts) == {"delta13C": 2.0}


def test_empty_series():
    assert compute_lab_analysis([]) == {}
    assert compute_lab_analysis([{"subsection": "a", "depth": 5.0}]) == {}


def test_non_lab_keys_never_averaged():
    la = compute_lab_analysis([{"subsection": "a", "depth": 10.0, "temperature": 12.0}])
    assert la == {}
