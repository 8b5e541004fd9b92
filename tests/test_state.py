from dataclasses import replace

import pytest

from paleocore.errors import ValidationError
from paleocore.models import Folder, SpliceInterval, TiePoint
from paleocore.state import (
    AppState,
    CalibrationApplied,
    CoreDeleted,
    CoreMoved,
    CoreSaved,
    CoreSelected,
    CoresLoaded,
    FolderDeleted,
    FolderRenamed,
    SectionDeleted,
    SectionSaved,
    SectionsLoaded,
    SpliceIntervalSet,
    TiePointsSet,
    filter_cores,
    filter_sections_by_epoch,
    in_region,
    reduce,
)
from tests.conftest import make_core, make_section


def _loaded():
    f = Folder("f1", "Leg 1")
    cores = [make_core("A", folder_id="f1"), make_core("B", folder_id="f1"), make_core("C")]
    return reduce(AppState(), CoresLoaded(cores, [f]))


def test_selection_defaults_and_falls_back():
    s = _loaded()
    assert s.selected_core_id == "A"
    s = reduce(s, CoreSelected("B"))
    s2 = reduce(s, CoreDeleted("B"))
    assert s2.selected_core_id == "A"
    assert s.selected_core_id == "B"  # original untouched
    empty = reduce(AppState(), CoresLoaded([], []))
    assert empty.selected_core_id is None
    with pytest.raises(ValidationError):
        reduce(s, CoreSelected("Z"))


def test_core_saved_replaces_or_appends_and_selects():
    s = _loaded()
    s = reduce(s, CoreSaved(replace(make_core("B"), name="New name")))
    assert [c.id for c in s.cores] == ["A", "B", "C"]
    assert s.core("B").name == "New name" and s.selected_core_id == "B"
    s = reduce(s, CoreSaved(make_core("D")))
    assert [c.id for c in s.cores] == ["A", "B", "C", "D"]


def test_core_deleted_drops_sections_and_synthesis_state():
    s = _loaded()
    s = reduce(s, SectionsLoaded("A", [make_section("A", id="s1"), make_section("A", id="s2")]))
    s = reduce(s, TiePointsSet([TiePoint("s1", 0, 1), TiePoint("s2", 0, 1)]))
    s = reduce(s, SpliceIntervalSet(SpliceInterval("s1", 0, 5)))
    s = reduce(s, CalibrationApplied([make_section("A", id="s1")]))
    s = reduce(s, CoreDeleted("A"))
    assert "A" not in s.sections
    assert s.tie_points == () and s.splice_intervals == {} and s.calibrated == {}


def test_folder_delete_unlinks_and_rename():
    s = _loaded()
    s = reduce(s, FolderRenamed(Folder("f1", "Renamed")))
    assert s.folders[0].name == "Renamed"
    s = reduce(s, FolderDeleted("f1"))
    assert s.folders == ()
    assert [c.folder_id for c in s.cores] == [None, None, None]


def test_core_moved():
    s = reduce(_loaded(), CoreMoved(make_core("C", folder_id="f1")))
    assert s.core("C").folder_id == "f1"


def test_section_saved_and_deleted():
    s = reduce(_loaded(), SectionsLoaded("A", [make_section("A", id="s1")]))
    s = reduce(s, SectionSaved(make_section("A", "Renamed", id="s1")))
    s = reduce(s, SectionSaved(make_section("A", "Other", id="s2")))
    assert [x.name for x in s.sections_for("A")] == ["Renamed", "Other"]
    s = reduce(s, SectionDeleted("A", "s1"))
    assert [x.id for x in s.sections_for("A")] == ["s2"]


def test_unknown_action():
    with pytest.raises(TypeError):
        reduce(AppState(), object())


def test_region_filter_pacific_wraps_antimeridian():
    west_pac = make_core("W", lat=0.0, lon=160.0)
    east_pac = make_core("E", lat=-10.0, lon=-120.0)
    atlantic = make_core("N", lat=40.0, lon=-30.0)
    assert in_region(west_pac, "Pacific Ocean") and in_region(east_pac, "Pacific Ocean")
    assert not in_region(atlantic, "Pacific Ocean")
    assert filter_cores([west_pac, east_pac, atlantic], region="North Atlantic") == [atlantic]
    with pytest.raises(ValidationError):
        in_region(atlantic, "Atlantis")


def test_folder_filter_and_epoch_filter():
    s = _loaded()
    assert [c.id for c in filter_cores(s.cores, folder_id="f1")] == ["A", "B"]
    secs = [make_section(epoch="Holocene"), make_section(epoch="Pleistocene"), make_section()]
    assert len(filter_sections_by_epoch(secs, " holocene")) == 1
    assert len(filter_sections_by_epoch(secs, None)) == 3


def test_section_changes_drop_stale_calibration():
    s = reduce(_loaded(), SectionsLoaded("A", [make_section("A", id="s1"), make_section("A", id="s2")]))
    s = reduce(s, SectionsLoaded("B", [make_section("B", id="s3")]))
    s = reduce(s, CalibrationApplied([make_section("A", id="s1"), make_section("A", id="s2"),
                                      make_section("B", id="s3")]))
    s = reduce(s, SectionSaved(make_section("A", "Edited", id="s1")))
    assert set(s.calibrated) == {"s2", "s3"}
    s = reduce(s, SectionsLoaded("A", [make_section("A", id="s2")]))
    assert set(s.calibrated) == {"s3"}
