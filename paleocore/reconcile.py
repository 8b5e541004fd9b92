"""Merge manual or imported rows into a section's data-point series.

Rows are keyed by ``subsection``.  A row whose key is already present is
shallow-merged into the existing point, a new key is appended, and a row
without a usable key gets one from the injected key factory.  The merged
series is ordered by depth and the section's lab analysis is recomputed from
scratch in the same step.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
import logging
import time

from .averages import compute_lab_analysis
from .constants import MANUAL_ENTRY_FIELDS
from .errors import ValidationError
from .models import DataPoint, LabAnalysis, Section
from .parsing import parse_number

logger = logging.getLogger(__name__)

ADDED = "added"
UPDATED = "updated"

KeyFactory = Callable[[int], str]


@dataclass
class ImportKeyFactory:
    """Default key generator for unkeyed rows: ``Imported-<ms>-<n>``.

    ``clock`` returns seconds; the millisecond stamp is taken once per factory
    so that all rows of one batch share it and differ by their counter.
    """

    clock: Callable[[], float] = time.time
    prefix: str = "Imported"
    _stamp: Optional[int] = field(default=None, init=False, repr=False)

    def __call__(self, index: int) -> str:
        if self._stamp is None:
            self._stamp = int(self.clock() * 1000)
        return f"{self.prefix}-{self._stamp}-{index}"


@dataclass(frozen=True)
class RowOutcome:
    subsection: str
    status: str  # ADDED | UPDATED
    generated_key: bool = False


@dataclass
class MergeResult:
    data_points: List[DataPoint]
    lab_analysis: LabAnalysis
    outcomes: List[RowOutcome]

    @property
    def added(self) -> int:
        return sum(1 for o in self.outcomes if o.status == ADDED)

    @property
    def updated(self) -> int:
        return sum(1 for o in self.outcomes if o.status == UPDATED)

    def message(self) -> str:
        return f"{self.added} new subsections added, {self.updated} updated."


def _usable_key(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    key = str(value).strip()
    return key or None


def _depth_sort_key(point: Mapping[str, Any]) -> float:
    d = point.get("depth")
    if isinstance(d, bool) or not isinstance(d, (int, float)):
        return 0.0
    return float(d)


def merge_data_points(
    existing: Iterable[Mapping[str, Any]],
    batch: Iterable[Mapping[str, Any]],
    key_factory: Optional[KeyFactory] = None,
) -> MergeResult:
    """Reconcile ``batch`` into ``existing`` and return the new series.

    Neither input is modified.  Each batch row is tagged ``added`` or
    ``updated`` at the moment it is applied, so two rows sharing a key in one
    batch count as one add and one update.
    """
    key_factory = key_factory or ImportKeyFactory()
    merged: Dict[Any, DataPoint] = {}
    for i, point in enumerate(existing):
        key = _usable_key(point.get("subsection"))
        # unkeyed stored points are kept under a private slot, never dropped
        merged[key if key is not None else ("__unkeyed__", i)] = dict(point)

    outcomes: List[RowOutcome] = []
    for index, row in enumerate(batch):
        new_point = dict(row)
        key = _usable_key(new_point.get("subsection"))
        if key is None:
            key = key_factory(index)
            bump = 1
            base = key
            while key in merged:
                key = f"{base}-{bump}"
                bump += 1
            new_point["subsection"] = key
            merged[key] = new_point
            outcomes.append(RowOutcome(key, ADDED, generated_key=True))
            continue
        new_point["subsection"] = key
        if key in merged:
            merged[key] = {**merged[key], **new_point}
            outcomes.append(RowOutcome(key, UPDATED))
        else:
            merged[key] = new_point
            outcomes.append(RowOutcome(key, ADDED))

    points = sorted(merged.values(), key=_depth_sort_key)
    return MergeResult(points, compute_lab_analysis(points), outcomes)


def apply_data_points(
    section: Section,
    batch: Iterable[Mapping[str, Any]],
    key_factory: Optional[KeyFactory] = None,
) -> Tuple[Section, MergeResult]:
    """Return a copy of ``section`` with ``batch`` merged and averages refreshed."""
    result = merge_data_points(section.data_points, batch, key_factory)
    logger.info(
        "Section %s: %d added, %d updated (%d points)",
        section.id, result.added, result.updated, len(result.data_points),
    )
    return replace(section, data_points=result.data_points, lab_analysis=result.lab_analysis), result


def refresh_lab_analysis(section: Section) -> Section:
    return replace(section, lab_analysis=compute_lab_analysis(section.data_points))


def next_manual_key(section: Section) -> str:
    return f"Sample {len(section.data_points) + 1}"


def build_manual_point(form: Mapping[str, Any]) -> DataPoint:
    """Validate a manual-entry form and return the point it describes.

    Raises :class:`ValidationError` when the subsection is blank or when none
    of the recognised numeric fields parses.
    """
    key = _usable_key(form.get("subsection"))
    if key is None:
        raise ValidationError("Subsection ID is a required field.")
    point: DataPoint = {"subsection": key}
    for name in MANUAL_ENTRY_FIELDS:
        v = parse_number(form.get(name), decimal_comma=False)
        if v is not None:
            point[name] = v
    if len(point) == 1:
        raise ValidationError("At least one data value (e.g., depth) must be provided.")
    return point


def add_manual_point(section: Section, form: Mapping[str, Any]) -> Tuple[Section, RowOutcome]:
    point = build_manual_point(form)
    updated, result = apply_data_points(section, [point])
    return updated, result.outcomes[0]


__all__ = [
    "ADDED",
    "UPDATED",
    "ImportKeyFactory",
    "RowOutcome",
    "MergeResult",
    "merge_data_points",
    "apply_data_points",
    "refresh_lab_analysis",
    "next_manual_key",
    "build_manual_point",
    "add_manual_point",
]
