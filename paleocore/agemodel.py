"""Age-depth calibration delegated to the AI service.

The local side builds the request, validates the reply and merges returned
ages onto the original points by exact depth.  The modelling itself happens
remotely.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging
import math

from .constants import PROXY_PRIORITY
from .errors import AgeModelError, AIDisabledError, AIServiceError, ValidationError
from .models import Section, TiePoint

logger = logging.getLogger(__name__)

AGE_DECIMALS = 4
MIN_TIE_POINTS = 2


def _finite(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    v = float(v)
    return v if math.isfinite(v) else None


def pick_primary_proxy(sections: Iterable[Section]) -> Optional[str]:
    """First proxy of the priority list present in any data point."""
    present = set()
    for s in sections:
        for p in s.data_points:
            present.update(k for k, v in p.items() if v is not None)
    for proxy in PROXY_PRIORITY:
        if proxy in present:
            return proxy
    return None


def tie_point_counts(tie_points: Iterable[TiePoint]) -> Counter:
    return Counter(tp.section_id for tp in tie_points)


def build_request(sections: Sequence[Section], tie_points: Sequence[TiePoint]) -> Dict[str, Any]:
    if len(tie_points) < MIN_TIE_POINTS:
        raise ValidationError("At least two tie-points are required to build an age model.")
    for tp in tie_points:
        if _finite(tp.depth) is None or _finite(tp.age) is None:
            raise ValidationError(f"Tie-point for section {tp.section_id} needs a numeric depth and age")
    primary = pick_primary_proxy(sections)
    payload_sections = []
    for s in sections:
        points = []
        for p in s.data_points:
            depth = _finite(p.get("depth"))
            if depth is None:
                continue
            row: Dict[str, Any] = {"depth": depth}
            if primary and p.get(primary) is not None:
                row[primary] = p[primary]
            points.append(row)
        payload_sections.append({"id": s.id, "name": s.name, "dataPoints": points})
    payload: Dict[str, Any] = {
        "sections": payload_sections,
        "tiePoints": [
            {"sectionId": tp.section_id, "depth": float(tp.depth), "age": float(tp.age)}
            for tp in tie_points
        ],
    }
    if primary:
        payload["analysisHint"] = (
            f"The primary proxy for this analysis is '{primary}'. "
            "Use its trends to refine the age model."
        )
    return payload


def validate_response(raw: Any) -> Dict[str, Dict[float, float]]:
    """Return ``{section_id: {depth: age}}`` from the service reply.

    Raises a single :class:`AgeModelError` when the reply has no sections or
    carries no age at all.
    """
    if isinstance(raw, dict):
        sections = raw.get("sections")
    elif isinstance(raw, list):
        sections = raw
    else:
        sections = None
    if not isinstance(sections, list) or not sections:
        raise AgeModelError("AI response did not contain a valid list of sections.")

    out: Dict[str, Dict[float, float]] = {}
    any_age = False
    for sec in sections:
        if not isinstance(sec, dict) or sec.get("id") is None:
            continue
        ages = out.setdefault(str(sec["id"]), {})
        for dp in sec.get("dataPoints") or []:
            if not isinstance(dp, dict):
                continue
            depth = _finite(dp.get("depth"))
            age = _finite(dp.get("age"))
            if depth is None or age is None:
                continue
            ages[depth] = age
            any_age = True
    if not any_age:
        raise AgeModelError(
            "The AI model did not return any calculated ages. "
            "Please check that your tie-points are valid and fall within the depth range of your sections."
        )
    return out


def merge_ages(
    sections: Sequence[Section],
    ages: Dict[str, Dict[float, float]],
    tie_points: Sequence[TiePoint],
) -> List[Section]:
    counts = tie_point_counts(tie_points)
    merged: List[Section] = []
    for s in sections:
        by_depth = ages.get(str(s.id))
        if counts.get(s.id, 0) < MIN_TIE_POINTS or not by_depth:
            merged.append(s)
            continue
        points = []
        for p in s.data_points:
            depth = _finite(p.get("depth"))
            if depth is not None and depth in by_depth:
                p = {**p, "age": round(by_depth[depth], AGE_DECIMALS)}
            else:
                p = dict(p)
            points.append(p)
        merged.append(replace(s, data_points=points))
    return merged


def run_age_model(sections: Sequence[Section], tie_points: Sequence[TiePoint], ai: Any) -> List[Section]:
    payload = build_request(sections, tie_points)
    logger.info(
        "Requesting age model for %d sections with %d tie-points",
        len(payload["sections"]), len(payload["tiePoints"]),
    )
    try:
        raw = ai.compute_age_model(payload)
    except (AIDisabledError, AgeModelError):
        raise
    except AIServiceError as e:
        raise AgeModelError(f"Failed to generate age model: {e}") from e
    return merge_ages(sections, validate_response(raw), tie_points)


__all__ = [
    "AGE_DECIMALS",
    "pick_primary_proxy",
    "tie_point_counts",
    "build_request",
    "validate_response",
    "merge_ages",
    "run_age_model",
]
