import json
from pathlib import Path

from paleocore import cli


def _run(capsys, *args):
    code = cli.main(list(args))
    out = capsys.readouterr().out
    return code, json.loads(out)


def test_samples_cores_and_sections(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    code, res = _run(capsys, "--db", db, "init")
    assert code == 0 and res["db"] == db
    code, res = _run(capsys, "--db", db, "load-samples")
    assert sorted(res["cores"]) == ["ODP-806B", "ODP-982A"]
    _, cores = _run(capsys, "--db", db, "cores", "--region", "Pacific Ocean")
    assert [c["id"] for c in cores] == ["ODP-806B"]
    _, secs = _run(capsys, "--db", db, "sections", "ODP-982A", "--epoch", "pleistocene")
    assert len(secs) == 2 and secs[0]["dataPoints"] == 6
    assert "sectionImage" not in secs[0]


def test_import_without_ai_uses_overrides(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "load-samples")
    _, secs = _run(capsys, "--db", db, "sections", "ODP-806B")
    sid = secs[0]["id"]
    csv = tmp_path / "upload.csv"
    csv.write_text("Depth_cm,d18O_permil,Comment\n120,3.45,ok\n")
    code, res = _run(capsys, "--db", db, "import", sid, str(csv),
                     "--map", "Depth_cm=depth", "--map", "d18O_permil=delta18O")
    assert code == 0
    assert res["added"] == 1 and res["updated"] == 0
    assert res["mapping"] == {"Depth_cm": "depth", "d18O_permil": "delta18O", "Comment": None}
    assert "disabled" in res["mapping_note"]
    _, secs = _run(capsys, "--db", db, "sections", "ODP-806B", "--points")
    assert any(p.get("depth") == 120.0 and p.get("delta18O") == 3.45 for p in secs[0]["dataPoints"])


def test_add_point_default_key(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "load-samples")
    _, secs = _run(capsys, "--db", db, "sections", "ODP-806B")
    code, res = _run(capsys, "--db", db, "add-point", secs[0]["id"], "--set", "depth=60", "--set", "tex86=0.7")
    assert code == 0
    assert res == {"ok": True, "subsection": "Sample 6", "status": "added",
                   "lab_analysis": res["lab_analysis"]}
    assert res["lab_analysis"]["tex86"] == 0.7
    code, res = _run(capsys, "--db", db, "add-point", secs[0]["id"], "--subsection", "x")
    assert code == 1 and "At least one data value" in res["error"]


def test_folder_export_and_delete(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "load-samples")
    _, folder = _run(capsys, "--db", db, "create-folder", "Leg 162")
    _run(capsys, "--db", db, "move-core", "ODP-982A", "--folder", folder["id"])
    _run(capsys, "--db", db, "move-core", "ODP-806B", "--folder", folder["id"])
    out = tmp_path / "leg.txt"
    code, res = _run(capsys, "--db", db, "export-odv", folder["id"], "--out", str(out))
    assert code == 0 and out.exists()
    assert out.read_text(encoding="utf-8").startswith("//ODV")
    code, res = _run(capsys, "--db", db, "delete-folder", folder["id"])
    assert res == {"ok": True, "deleted": folder["id"]}
    _, cores = _run(capsys, "--db", db, "cores")
    assert [c["folderId"] for c in cores] == [None, None]
    _, secs = _run(capsys, "--db", db, "sections", "ODP-982A")
    assert len(secs) == 2


def test_splice_from_stored_ages(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "add-core", "K1", "--name", "Test", "--lat", "1", "--lon", "2",
         "--water-depth", "100")
    _, secs = _run(capsys, "--db", db, "sections", "K1")
    assert secs == []
    code, res = _run(capsys, "--db", db, "splice", "K1")
    assert code == 0 and res == []


def test_ai_commands_fail_cleanly_without_key(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "load-samples")
    _, secs = _run(capsys, "--db", db, "sections", "ODP-982A")
    code, res = _run(capsys, "--db", db, "summarize", secs[0]["id"])
    assert code == 1 and res["error"].startswith("AI features are disabled")
    code, res = _run(capsys, "--db", db, "age-model", "ODP-982A", "--tie", f"{secs[0]['id']}:2:1")
    assert code == 1 and "two tie-points" in res["error"]


def test_report_command(tmp_path: Path, capsys):
    db = str(tmp_path / "p.sqlite3")
    _run(capsys, "--db", db, "load-samples")
    out = tmp_path / "r.pdf"
    code, res = _run(capsys, "--db", db, "report", "ODP-806B", "--out", str(out))
    assert code == 0 and Path(res["pdf"]).exists()
