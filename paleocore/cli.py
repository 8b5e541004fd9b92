
from __future__ import annotations
import argparse, json, logging, sys
from pathlib import Path

from .ai import AiService
from .config import load_settings
from .errors import PaleoCoreError, ValidationError
from .gateway import PaleoStore, SqliteTableClient
from .importer import FORMATS, format_from_path
from .models import Core, Location, SpliceInterval, TiePoint
from .reconcile import next_manual_key
from .report_pdf import build_core_report_pdf
from .export import export_folder_to_odv
from .state import filter_cores, filter_sections_by_epoch
from .workspace import Workspace

logger = logging.getLogger(__name__)


def _pairs(items, what: str) -> dict:
    out = {}
    for item in items or []:
        if "=" not in item:
            raise ValidationError(f"{what} must look like NAME=VALUE, got '{item}'")
        k, v = item.split("=", 1)
        out[k.strip()] = v.strip()
    return out


def _triple(text: str, what: str) -> tuple[str, float, float]:
    parts = text.rsplit(":", 2)
    if len(parts) != 3:
        raise ValidationError(f"{what} must look like SECTION_ID:A:B, got '{text}'")
    try:
        return parts[0], float(parts[1]), float(parts[2])
    except ValueError:
        raise ValidationError(f"{what} bounds must be numbers, got '{text}'") from None


def build_parser():
    p = argparse.ArgumentParser(prog="paleocore", description="Sediment core records, proxy data and age models")
    p.add_argument("--config", type=Path, default=None, help="JSON settings file")
    p.add_argument("--db", default=None, help="SQLite database path (default from settings)")
    p.add_argument("--user", default=None, help="Owner id for cores and folders")
    p.add_argument("--model", default=None, help="Gemini model name")
    p.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init", help="Create the database schema")
    sub.add_parser("load-samples", help="Insert (or re-seed) the bundled sample cores")

    c = sub.add_parser("cores", help="List cores")
    c.add_argument("--region", default=None, help="Ocean region bounding box")
    c.add_argument("--folder", default=None, help="Only cores in this folder id")

    ac = sub.add_parser("add-core", help="Create or edit a core")
    ac.add_argument("core_id")
    ac.add_argument("--name", required=True)
    ac.add_argument("--lat", type=float, required=True)
    ac.add_argument("--lon", type=float, required=True)
    ac.add_argument("--water-depth", type=float, required=True, help="Water depth [m]")
    ac.add_argument("--project", default="")
    ac.add_argument("--folder", default=None)

    s = sub.add_parser("sections", help="List the sections of a core")
    s.add_argument("core_id")
    s.add_argument("--epoch", default=None)
    s.add_argument("--points", action="store_true", help="Include data points")

    im = sub.add_parser("import", help="Import a CSV/ODV file into a section")
    im.add_argument("section_id")
    im.add_argument("file", type=Path)
    im.add_argument("--format", choices=FORMATS, default=None, help="Default: from file extension")
    im.add_argument("--map", action="append", default=[], metavar="HEADER=KEY",
                    help="Override the proposed mapping; an empty KEY skips the column")

    ap = sub.add_parser("add-point", help="Add or update one data point by subsection id")
    ap.add_argument("section_id")
    ap.add_argument("--subsection", default=None, help="Default: 'Sample <n+1>'")
    ap.add_argument("--set", action="append", default=[], metavar="FIELD=VALUE")

    am = sub.add_parser("age-model", help="Calibrate a core's sections against tie-points")
    am.add_argument("core_id")
    am.add_argument("--tie", action="append", default=[], metavar="SECTION_ID:DEPTH:AGE")
    am.add_argument("--save", action="store_true", help="Persist calibrated ages")

    sp = sub.add_parser("splice", help="Composite splice from calibrated sections")
    sp.add_argument("core_id")
    sp.add_argument("--interval", action="append", default=[], metavar="SECTION_ID:START:END")

    ev = sub.add_parser("events", help="Detect named paleo-events in a section's aged series")
    ev.add_argument("section_id")

    ask = sub.add_parser("ask", help="Ask a question about a section (streamed)")
    ask.add_argument("section_id")
    ask.add_argument("question")

    sm = sub.add_parser("summarize", help="Generate and store a section summary")
    sm.add_argument("section_id")

    idf = sub.add_parser("identify", help="Identify a microfossil image")
    idf.add_argument("image", type=Path)
    idf.add_argument("--save", action="store_true", help="Add the draft to the microfossil table")

    rp = sub.add_parser("report", help="Write a PDF report for a core")
    rp.add_argument("core_id")
    rp.add_argument("--out", type=Path, required=True)

    ex = sub.add_parser("export-odv", help="Export a folder to an ODV spreadsheet")
    ex.add_argument("folder_id")
    ex.add_argument("--out", type=Path, required=True)

    cf = sub.add_parser("create-folder", help="Create a folder")
    cf.add_argument("name")

    rf = sub.add_parser("rename-folder", help="Rename a folder")
    rf.add_argument("folder_id")
    rf.add_argument("name")

    mv = sub.add_parser("move-core", help="Move a core into a folder (omit --folder to unfile)")
    mv.add_argument("core_id")
    mv.add_argument("--folder", default=None)

    df = sub.add_parser("delete-folder", help="Delete a folder; its cores become unfiled")
    df.add_argument("folder_id")

    dc = sub.add_parser("delete-core", help="Delete a core and its sections")
    dc.add_argument("core_id")
    return p


def open_workspace(settings) -> Workspace:
    store = PaleoStore(SqliteTableClient(settings.db_path))
    ai = AiService(settings.api_key, model=settings.model)
    ws = Workspace(store, ai, settings.user_id)
    ws.load()
    return ws


def _load_all_sections(ws: Workspace) -> None:
    for core in ws.state.cores:
        ws.load_sections(core.id)


def _emit(obj) -> None:
    print(json.dumps(obj, indent=2, default=str))


def run(a, ws: Workspace) -> None:
    if a.cmd == "init":
        _emit({"ok": True, "db": ws.store.client.path})
    elif a.cmd == "load-samples":
        ws.load_sample_data()
        _emit({"ok": True, "cores": [c.id for c in ws.state.cores]})
    elif a.cmd == "cores":
        cores = filter_cores(ws.state.cores, region=a.region, folder_id=a.folder)
        _emit([c.to_dict() for c in cores])
    elif a.cmd == "add-core":
        core = Core(a.core_id, a.name, Location(a.lat, a.lon), a.water_depth, a.project, folder_id=a.folder)
        _emit(ws.save_core(core).to_dict())
    elif a.cmd == "sections":
        ws.require_core(a.core_id)
        sections = filter_sections_by_epoch(ws.load_sections(a.core_id), a.epoch)
        out = []
        for sec in sections:
            d = sec.to_dict()
            if not a.points:
                d["dataPoints"] = len(sec.data_points)
            d.pop("sectionImage", None)
            out.append(d)
        _emit(out)
    elif a.cmd == "import":
        _load_all_sections(ws)
        fmt = a.format or format_from_path(a.file)
        overrides = {k: (v or None) for k, v in _pairs(a.map, "--map").items()}
        text = Path(a.file).read_text(encoding="utf-8-sig")
        section, result, proposal = ws.import_data(a.section_id, text, fmt, overrides)
        _emit({
            "ok": True,
            "section_id": section.id,
            "added": result.added,
            "updated": result.updated,
            "message": result.message(),
            "mapping": proposal.mapping,
            "mapping_note": proposal.note,
            "warnings": proposal.warnings,
            "lab_analysis": section.lab_analysis,
        })
    elif a.cmd == "add-point":
        _load_all_sections(ws)
        form = _pairs(a.set, "--set")
        if a.subsection:
            form["subsection"] = a.subsection
        form.setdefault("subsection", next_manual_key(ws.find_section(a.section_id)))
        section, outcome = ws.add_data_point(a.section_id, form)
        _emit({"ok": True, "subsection": outcome.subsection, "status": outcome.status,
               "lab_analysis": section.lab_analysis})
    elif a.cmd == "age-model":
        ws.load_sections(a.core_id)
        ties = [TiePoint(*_triple(t, "--tie")) for t in a.tie]
        ws.set_tie_points(ties)
        calibrated = ws.run_age_model(a.core_id)
        if a.save:
            for sec in calibrated:
                ws.save_section(sec)
        _emit({
            "ok": True,
            "saved": bool(a.save),
            "sections": [
                {"id": sec.id, "name": sec.name,
                 "dataPoints": [{"depth": p.get("depth"), "age": p.get("age")} for p in sec.data_points]}
                for sec in calibrated
            ],
        })
    elif a.cmd == "splice":
        ws.load_sections(a.core_id)
        for iv in a.interval:
            sid, start, end = _triple(iv, "--interval")
            ws.set_splice_interval(SpliceInterval(sid, start, end))
        _emit(ws.composite_splice(a.core_id))
    elif a.cmd == "events":
        _load_all_sections(ws)
        events = ws.detect_events(ws.find_section(a.section_id).data_points)
        _emit([e.to_dict() for e in events])
    elif a.cmd == "ask":
        _load_all_sections(ws)
        for chunk in ws.ask(a.section_id, a.question):
            sys.stdout.write(chunk)
            sys.stdout.flush()
        sys.stdout.write("\n")
    elif a.cmd == "summarize":
        _load_all_sections(ws)
        section = ws.summarize(a.section_id)
        _emit({"ok": True, "section_id": section.id, "summary": section.summary})
    elif a.cmd == "identify":
        analysis, draft = ws.identify_image(a.image)
        res = {"analysis": analysis, "draft": {**draft.to_dict(), "imageUrl": "<data uri>"}}
        if a.save:
            res["saved"] = ws.add_fossil(draft).id
        _emit(res)
    elif a.cmd == "report":
        core = ws.require_core(a.core_id)
        sections = ws.load_sections(a.core_id)
        path = build_core_report_pdf(core, sections, ws.state.microfossils, a.out)
        _emit({"ok": True, "pdf": str(path)})
    elif a.cmd == "export-odv":
        folder = next((f for f in ws.state.folders if f.id == a.folder_id), None)
        if folder is None:
            raise ValidationError("Folder not found.")
        members = [c for c in ws.state.cores if c.folder_id == folder.id]
        sections = [sec for c in members for sec in ws.load_sections(c.id)]
        path = export_folder_to_odv(folder, ws.state.cores, sections, a.out)
        _emit({"ok": True, "odv": str(path)})
    elif a.cmd == "create-folder":
        _emit(ws.create_folder(a.name).to_dict())
    elif a.cmd == "rename-folder":
        _emit(ws.rename_folder(a.folder_id, a.name).to_dict())
    elif a.cmd == "move-core":
        _emit(ws.move_core(a.core_id, a.folder).to_dict())
    elif a.cmd == "delete-folder":
        ws.delete_folder(a.folder_id)
        _emit({"ok": True, "deleted": a.folder_id})
    elif a.cmd == "delete-core":
        ws.delete_core(a.core_id)
        _emit({"ok": True, "deleted": a.core_id})


def main(argv=None) -> int:
    ap = build_parser()
    a = ap.parse_args(argv)
    ws = None
    try:
        settings = load_settings(a.config, db_path=a.db, user_id=a.user, model=a.model, log_level=a.log_level)
        logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.WARNING),
                            format="%(levelname)s %(name)s: %(message)s")
        ws = open_workspace(settings)
        run(a, ws)
    except PaleoCoreError as e:
        logger.debug("command %s failed", a.cmd, exc_info=True)
        _emit({"ok": False, "error": str(e)})
        return 1
    finally:
        if ws is not None:
            ws.store.client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
