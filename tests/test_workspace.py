import pytest

from paleocore.errors import RemoteStoreError, ValidationError
from paleocore.gateway import PaleoStore
from paleocore.models import SpliceInterval, TiePoint
from paleocore.workspace import Workspace
from tests.conftest import make_core, make_section


class StubAI:
    def __init__(self, age_reply=None):
        self.age_reply = age_reply

    def map_headers(self, headers):
        return {"depth": "depth", "d18O": "delta18O"}

    def compute_age_model(self, payload):
        return self.age_reply

    def summarize_section(self, section, microfossils):
        return f"Summary of {section.name}"


class FailingUpdates(PaleoStore):
    def update_section(self, section):
        raise RemoteStoreError("connection reset", table="sections")


def _ws(store, ai=None):
    ws = Workspace(store, ai or StubAI(), "u1")
    ws.load()
    return ws


def test_save_core_then_section_then_manual_point(store):
    ws = _ws(store)
    ws.save_core(make_core("C1"))
    sec = ws.save_section(make_section("C1"))
    updated, outcome = ws.add_data_point(sec.id, {"subsection": "S1", "depth": "4", "delta18O": "3.3"})
    assert outcome.status == "added"
    assert ws.find_section(sec.id).lab_analysis == {"delta18O": pytest.approx(3.3)}
    [stored] = store.fetch_sections_for_core("C1")
    assert stored.data_points == [{"subsection": "S1", "depth": 4.0, "delta18O": 3.3}]


def test_failed_write_leaves_state_unchanged(store):
    store.save_core(make_core("C1"), "u1", is_editing=False)
    sec = store.save_section(make_section("C1"), False)
    ws = Workspace(FailingUpdates(store.client), StubAI(), "u1")
    ws.load()
    ws.load_sections("C1")
    before = ws.state
    with pytest.raises(RemoteStoreError):
        ws.import_data(sec.id, "depth,d18O\n1,2\n", "csv")
    assert ws.state is before
    assert ws.find_section(sec.id).data_points == []


def test_duplicate_core_rejected_without_state_change(store):
    store.save_core(make_core("C1"), "u2", is_editing=False)
    ws = _ws(store)
    with pytest.raises(ValidationError):
        ws.save_core(make_core("C1"))
    assert ws.state.cores == ()


def test_age_model_and_splice_flow(store):
    ws = _ws(store, StubAI())
    ws.save_core(make_core("C1"))
    sec = ws.save_section(make_section("C1", points=[
        {"subsection": "a", "depth": 0.0, "delta18O": 3.0},
        {"subsection": "b", "depth": 10.0, "delta18O": 4.0},
    ]))
    ws.ai.age_reply = {"sections": [{"id": sec.id, "name": sec.name, "dataPoints": [
        {"depth": 0.0, "age": 2.0}, {"depth": 10.0, "age": 12.0},
    ]}]}
    ws.set_tie_points([TiePoint(sec.id, 0.0, 2.0), TiePoint(sec.id, 10.0, 12.0)])
    [cal] = ws.run_age_model("C1")
    assert [p["age"] for p in cal.data_points] == [2.0, 12.0]
    ws.set_splice_interval(SpliceInterval(sec.id, 12.0, 0.0))
    assert [p["subsection"] for p in ws.composite_splice("C1")] == ["a", "b"]


def test_summary_is_persisted(store):
    ws = _ws(store)
    ws.save_core(make_core("C1"))
    sec = ws.save_section(make_section("C1", "Hole Z"))
    assert ws.summarize(sec.id).summary == "Summary of Hole Z"
    assert store.fetch_sections_for_core("C1")[0].summary == "Summary of Hole Z"


def test_folder_lifecycle(store):
    ws = _ws(store)
    f = ws.create_folder("Leg 1")
    ws.save_core(make_core("C1"))
    ws.move_core("C1", f.id)
    assert ws.state.core("C1").folder_id == f.id
    ws.delete_folder(f.id)
    assert ws.state.folders == () and ws.state.core("C1").folder_id is None
    ws.delete_core("C1")
    assert ws.state.cores == ()


def test_load_sample_data(store):
    ws = _ws(store)
    ws.load_sample_data()
    assert {c.id for c in ws.state.cores} == {"ODP-982A", "ODP-806B"}
    assert ws.state.selected_core_id in {"ODP-982A", "ODP-806B"}


def test_splice_follows_edits_after_calibration(store):
    ws = _ws(store)
    ws.save_core(make_core("C1"))
    sec = ws.save_section(make_section("C1", points=[
        {"subsection": "a", "depth": 10.0, "delta18O": 3.0},
        {"subsection": "b", "depth": 20.0, "delta18O": 4.0},
    ]))
    ws.ai.age_reply = [{"id": sec.id, "name": sec.name, "dataPoints": [
        {"depth": 10.0, "age": 5.0}, {"depth": 20.0, "age": 10.0},
    ]}]
    ws.set_tie_points([TiePoint(sec.id, 10.0, 5.0), TiePoint(sec.id, 20.0, 10.0)])
    ws.run_age_model("C1")
    ws.set_splice_interval(SpliceInterval(sec.id, 0.0, 100.0))
    assert ws.composite_splice("C1")[0]["age"] == 5.0
    ws.add_data_point(sec.id, {"subsection": "a", "delta18O": "9.0"})
    assert ws.state.calibrated == {}
    assert [p["delta18O"] for p in ws.calibrated_sections("C1")[0].data_points] == [9.0, 4.0]
    # uncalibrated points carry no age, so the splice is empty until the model runs again
    assert ws.composite_splice("C1") == []


def test_age_model_uses_only_this_cores_tie_points(store):
    ai = StubAI(age_reply={"sections": []})
    ws = _ws(store, ai)
    ws.save_core(make_core("C1"))
    ws.save_core(make_core("C2"))
    s1 = ws.save_section(make_section("C1", points=[{"subsection": "a", "depth": 1.0, "delta18O": 3.0}]))
    s2 = ws.save_section(make_section("C2", points=[{"subsection": "a", "depth": 1.0, "delta18O": 3.0}]))
    ws.set_tie_points([TiePoint(s1.id, 1.0, 2.0), TiePoint(s2.id, 1.0, 2.0), TiePoint(s2.id, 5.0, 9.0)])
    with pytest.raises(ValidationError, match="two tie-points"):
        ws.run_age_model("C1")
