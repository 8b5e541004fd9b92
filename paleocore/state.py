"""Immutable application state and its reducers.

:func:`reduce` applies one action and returns a new :class:`AppState`; the
input state is never modified.  After every action the selected core falls
back to the first core when the previous selection no longer exists.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .constants import REGIONS
from .errors import ValidationError
from .models import Core, Folder, Microfossil, Section, SpliceInterval, TiePoint


@dataclass(frozen=True)
class AppState:
    cores: Tuple[Core, ...] = ()
    folders: Tuple[Folder, ...] = ()
    microfossils: Tuple[Microfossil, ...] = ()
    sections: Mapping[str, Tuple[Section, ...]] = field(default_factory=dict)
    selected_core_id: Optional[str] = None
    calibrated: Mapping[str, Section] = field(default_factory=dict)
    tie_points: Tuple[TiePoint, ...] = ()
    splice_intervals: Mapping[str, SpliceInterval] = field(default_factory=dict)

    @property
    def selected_core(self) -> Optional[Core]:
        return next((c for c in self.cores if c.id == self.selected_core_id), None)

    def core(self, core_id: str) -> Optional[Core]:
        return next((c for c in self.cores if c.id == core_id), None)

    def sections_for(self, core_id: str) -> Tuple[Section, ...]:
        return self.sections.get(core_id, ())


# --------------------------------------------------------------------------
# Actions
# --------------------------------------------------------------------------

@dataclass(frozen=True)
class CoresLoaded:
    cores: Sequence[Core]
    folders: Sequence[Folder]
    microfossils: Sequence[Microfossil] = ()


@dataclass(frozen=True)
class CoreSelected:
    core_id: Optional[str]


@dataclass(frozen=True)
class CoreSaved:
    core: Core


@dataclass(frozen=True)
class CoreDeleted:
    core_id: str


@dataclass(frozen=True)
class CoreMoved:
    core: Core


@dataclass(frozen=True)
class FolderCreated:
    folder: Folder


@dataclass(frozen=True)
class FolderRenamed:
    folder: Folder


@dataclass(frozen=True)
class FolderDeleted:
    folder_id: str


@dataclass(frozen=True)
class SectionsLoaded:
    core_id: str
    sections: Sequence[Section]


@dataclass(frozen=True)
class SectionSaved:
    section: Section


@dataclass(frozen=True)
class SectionDeleted:
    core_id: str
    section_id: str


@dataclass(frozen=True)
class FossilAdded:
    fossil: Microfossil


@dataclass(frozen=True)
class TiePointsSet:
    tie_points: Sequence[TiePoint]


@dataclass(frozen=True)
class CalibrationApplied:
    sections: Sequence[Section]


@dataclass(frozen=True)
class SpliceIntervalSet:
    interval: SpliceInterval


# --------------------------------------------------------------------------
# Reducers
# --------------------------------------------------------------------------

def _replace_or_append(items: Iterable, item, key: Callable) -> tuple:
    items = list(items)
    for i, existing in enumerate(items):
        if key(existing) == key(item):
            items[i] = item
            return tuple(items)
    items.append(item)
    return tuple(items)


def _drop_section_refs(state: AppState, section_ids: set) -> dict:
    return dict(
        calibrated={k: v for k, v in state.calibrated.items() if k not in section_ids},
        tie_points=tuple(tp for tp in state.tie_points if tp.section_id not in section_ids),
        splice_intervals={k: v for k, v in state.splice_intervals.items() if k not in section_ids},
    )


def _cores_loaded(state: AppState, a: CoresLoaded) -> AppState:
    return replace(state, cores=tuple(a.cores), folders=tuple(a.folders),
                   microfossils=tuple(a.microfossils) or state.microfossils)


def _core_selected(state: AppState, a: CoreSelected) -> AppState:
    if a.core_id is not None and state.core(a.core_id) is None:
        raise ValidationError(f"Unknown core '{a.core_id}'")
    return replace(state, selected_core_id=a.core_id)


def _core_saved(state: AppState, a: CoreSaved) -> AppState:
    cores = _replace_or_append(state.cores, a.core, key=lambda c: c.id)
    return replace(state, cores=cores, selected_core_id=a.core.id)


def _core_deleted(state: AppState, a: CoreDeleted) -> AppState:
    gone = {s.id for s in state.sections_for(a.core_id)}
    sections = {k: v for k, v in state.sections.items() if k != a.core_id}
    return replace(
        state,
        cores=tuple(c for c in state.cores if c.id != a.core_id),
        sections=sections,
        **_drop_section_refs(state, gone),
    )


def _core_moved(state: AppState, a: CoreMoved) -> AppState:
    return replace(state, cores=tuple(a.core if c.id == a.core.id else c for c in state.cores))


def _folder_created(state: AppState, a: FolderCreated) -> AppState:
    return replace(state, folders=state.folders + (a.folder,))


def _folder_renamed(state: AppState, a: FolderRenamed) -> AppState:
    return replace(state, folders=tuple(a.folder if f.id == a.folder.id else f for f in state.folders))


def _folder_deleted(state: AppState, a: FolderDeleted) -> AppState:
    cores = tuple(replace(c, folder_id=None) if c.folder_id == a.folder_id else c for c in state.cores)
    return replace(state, folders=tuple(f for f in state.folders if f.id != a.folder_id), cores=cores)


def _sections_loaded(state: AppState, a: SectionsLoaded) -> AppState:
    calibrated = {k: v for k, v in state.calibrated.items() if v.core_id != a.core_id}
    return replace(state, sections={**state.sections, a.core_id: tuple(a.sections)}, calibrated=calibrated)


def _section_saved(state: AppState, a: SectionSaved) -> AppState:
    s = a.section
    current = _replace_or_append(state.sections_for(s.core_id), s, key=lambda x: x.id)
    calibrated = {k: v for k, v in state.calibrated.items() if k != s.id}
    return replace(state, sections={**state.sections, s.core_id: current}, calibrated=calibrated)


def _section_deleted(state: AppState, a: SectionDeleted) -> AppState:
    current = tuple(s for s in state.sections_for(a.core_id) if s.id != a.section_id)
    return replace(state, sections={**state.sections, a.core_id: current},
                   **_drop_section_refs(state, {a.section_id}))


def _fossil_added(state: AppState, a: FossilAdded) -> AppState:
    return replace(state, microfossils=_replace_or_append(state.microfossils, a.fossil, key=lambda f: f.id))


def _tie_points_set(state: AppState, a: TiePointsSet) -> AppState:
    return replace(state, tie_points=tuple(a.tie_points))


def _calibration_applied(state: AppState, a: CalibrationApplied) -> AppState:
    return replace(state, calibrated={**state.calibrated, **{s.id: s for s in a.sections}})


def _splice_interval_set(state: AppState, a: SpliceIntervalSet) -> AppState:
    return replace(state, splice_intervals={**state.splice_intervals, a.interval.section_id: a.interval})


REDUCERS: Dict[type, Callable] = {
    CoresLoaded: _cores_loaded,
    CoreSelected: _core_selected,
    CoreSaved: _core_saved,
    CoreDeleted: _core_deleted,
    CoreMoved: _core_moved,
    FolderCreated: _folder_created,
    FolderRenamed: _folder_renamed,
    FolderDeleted: _folder_deleted,
    SectionsLoaded: _sections_loaded,
    SectionSaved: _section_saved,
    SectionDeleted: _section_deleted,
    FossilAdded: _fossil_added,
    TiePointsSet: _tie_points_set,
    CalibrationApplied: _calibration_applied,
    SpliceIntervalSet: _splice_interval_set,
}


def reduce(state: AppState, action) -> AppState:
    try:
        reducer = REDUCERS[type(action)]
    except KeyError:
        raise TypeError(f"No reducer for {type(action).__name__}") from None
    new = reducer(state, action)
    if new.selected_core_id is None or new.core(new.selected_core_id) is None:
        new = replace(new, selected_core_id=new.cores[0].id if new.cores else None)
    return new


# --------------------------------------------------------------------------
# Filters
# --------------------------------------------------------------------------

def in_region(core: Core, region: str) -> bool:
    try:
        b = REGIONS[region]
    except KeyError:
        raise ValidationError(f"Unknown region '{region}'; choose from {', '.join(REGIONS)}") from None
    lat, lon = core.location.lat, core.location.lon
    if b["minLon"] > b["maxLon"]:
        lon_ok = lon >= b["minLon"] or lon <= b["maxLon"]
    else:
        lon_ok = b["minLon"] <= lon <= b["maxLon"]
    return lon_ok and b["minLat"] <= lat <= b["maxLat"]


def filter_cores(cores: Iterable[Core], *, region: Optional[str] = None,
                 folder_id: Optional[str] = None) -> List[Core]:
    out = []
    for c in cores:
        if folder_id and c.folder_id != folder_id:
            continue
        if region and not in_region(c, region):
            continue
        out.append(c)
    return out


def filter_sections_by_epoch(sections: Iterable[Section], epoch: Optional[str]) -> List[Section]:
    if not epoch:
        return list(sections)
    want = epoch.strip().lower()
    return [s for s in sections if (s.epoch or "").strip().lower() == want]


__all__ = [
    "AppState",
    "CoresLoaded",
    "CoreSelected",
    "CoreSaved",
    "CoreDeleted",
    "CoreMoved",
    "FolderCreated",
    "FolderRenamed",
    "FolderDeleted",
    "SectionsLoaded",
    "SectionSaved",
    "SectionDeleted",
    "FossilAdded",
    "TiePointsSet",
    "CalibrationApplied",
    "SpliceIntervalSet",
    "REDUCERS",
    "reduce",
    "in_region",
    "filter_cores",
    "filter_sections_by_epoch",
]
