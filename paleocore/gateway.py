"""Relational store access.

Rows in the store use snake_case columns and JSON columns for nested values;
the mappers in this module translate them to and from :mod:`paleocore.models`
and fill the defaults the application relies on.  :class:`PaleoStore` holds
the store operations and talks to any object implementing
:class:`TableClient`.  :class:`SqliteTableClient` is the bundled backend.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple
from urllib.parse import quote
import json
import logging
import sqlite3
import uuid

from .errors import RemoteStoreError, ValidationError
from .models import (
    Core,
    EcologicalData,
    Folder,
    Location,
    Microfossil,
    Section,
    SectionFossilRecord,
    Taxonomy,
)
from .reconcile import refresh_lab_analysis

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
PLACEHOLDER_HOST = "placehold.co"

SCHEMA = """
CREATE TABLE IF NOT EXISTS folders (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS cores (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    location TEXT NOT NULL,
    water_depth REAL NOT NULL,
    project TEXT NOT NULL,
    folder_id TEXT REFERENCES folders(id),
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS sections (
    id TEXT PRIMARY KEY,
    core_id TEXT NOT NULL REFERENCES cores(id),
    name TEXT NOT NULL,
    section_depth REAL NOT NULL,
    sample_interval REAL,
    recovery_date TEXT NOT NULL,
    collection_time TEXT,
    epoch TEXT NOT NULL,
    geological_period TEXT NOT NULL,
    age_range TEXT NOT NULL,
    data_points TEXT,
    microfossil_records TEXT,
    lab_analysis TEXT,
    summary TEXT,
    section_image TEXT,
    collector TEXT,
    lithology TEXT,
    munsell_color TEXT,
    grain_size TEXT,
    tephra_layers TEXT,
    paleomagnetic_reversals TEXT,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS microfossils (
    id TEXT PRIMARY KEY,
    taxonomy TEXT NOT NULL,
    description TEXT,
    stratigraphic_range TEXT,
    ecology TEXT NOT NULL,
    image_url TEXT,
    created_at TEXT NOT NULL
);
"""

JSON_COLUMNS = {
    "cores": ("location",),
    "sections": ("data_points", "microfossil_records", "lab_analysis"),
    "microfossils": ("taxonomy", "ecology"),
    "folders": (),
}

# tables whose id is assigned by the store when absent
GENERATED_IDS = ("sections", "folders")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# --------------------------------------------------------------------------
# Row mappers
# --------------------------------------------------------------------------

def placeholder_image(name: str) -> str:
    svg = (
        '<svg width="800" height="100" xmlns="http://www.w3.org/2000/svg">'
        '<rect width="800" height="100" fill="#1e293b" />'
        '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" '
        f'font-family="sans-serif" font-size="24" fill="#94a3b8">{name}</text></svg>'
    )
    return "data:image/svg+xml," + quote(svg, safe="-_.!~*'()")


def core_from_row(row: Mapping[str, Any]) -> Core:
    loc = row.get("location") or {}
    return Core(
        id=row["id"],
        name=row["name"],
        location=Location(lat=float(loc.get("lat", 0.0)), lon=float(loc.get("lon", 0.0))),
        water_depth=row["water_depth"],
        project=row["project"],
        folder_id=row.get("folder_id"),
        user_id=row.get("user_id"),
        created_at=row.get("created_at"),
    )


def core_to_row(core: Core, user_id: str) -> Dict[str, Any]:
    return {
        "id": core.id,
        "user_id": user_id,
        "name": core.name,
        "location": {"lat": core.location.lat, "lon": core.location.lon},
        "water_depth": core.water_depth,
        "project": core.project,
        "folder_id": core.folder_id,
    }


def section_from_row(row: Mapping[str, Any]) -> Section:
    points = []
    for i, dp in enumerate(row.get("data_points") or []):
        dp = dict(dp)
        if not dp.get("subsection"):
            dp["subsection"] = f"Subsection {i + 1}"
        points.append(dp)
    records = [
        SectionFossilRecord(
            fossil_id=r.get("fossil_id", ""),
            abundance=r.get("abundance", "Present"),
            preservation=r.get("preservation", "Good"),
            observations=r.get("observations") or "",
        )
        for r in row.get("microfossil_records") or []
    ]
    image = row.get("section_image")
    if not image or PLACEHOLDER_HOST in image:
        image = placeholder_image(row["name"])
    return Section(
        id=row["id"],
        core_id=row["core_id"],
        name=row["name"],
        section_depth=row["section_depth"],
        sample_interval=row.get("sample_interval"),
        recovery_date=row.get("recovery_date") or "",
        collection_time=row.get("collection_time"),
        epoch=row.get("epoch") or "",
        geological_period=row.get("geological_period") or "Indeterminate",
        age_range=row.get("age_range") or "",
        data_points=points,
        microfossil_records=records,
        lab_analysis=dict(row.get("lab_analysis") or {}),
        summary=row.get("summary"),
        section_image=image,
        collector=row.get("collector"),
        lithology=row.get("lithology"),
        munsell_color=row.get("munsell_color"),
        grain_size=row.get("grain_size"),
        tephra_layers=row.get("tephra_layers"),
        paleomagnetic_reversals=row.get("paleomagnetic_reversals"),
        created_at=row.get("created_at"),
    )


def section_to_row(section: Section, *, include_core: bool = False) -> Dict[str, Any]:
    row = {
        "name": section.name,
        "section_depth": section.section_depth,
        "sample_interval": section.sample_interval,
        "recovery_date": section.recovery_date,
        "collection_time": section.collection_time,
        "epoch": section.epoch,
        "geological_period": section.geological_period,
        "age_range": section.age_range,
        "data_points": [dict(p) for p in section.data_points],
        "microfossil_records": [
            {
                "fossil_id": r.fossil_id,
                "abundance": r.abundance,
                "preservation": r.preservation,
                "observations": r.observations,
            }
            for r in section.microfossil_records
        ],
        "lab_analysis": dict(section.lab_analysis) or None,
        "summary": section.summary,
        "section_image": section.section_image,
        "collector": section.collector,
        "lithology": section.lithology,
        "munsell_color": section.munsell_color,
        "grain_size": section.grain_size,
        "tephra_layers": section.tephra_layers,
        "paleomagnetic_reversals": section.paleomagnetic_reversals,
    }
    if include_core:
        row["core_id"] = section.core_id
    return row


def fossil_from_row(row: Mapping[str, Any]) -> Microfossil:
    return Microfossil(
        id=row["id"],
        taxonomy=Taxonomy.from_dict(row.get("taxonomy")),
        description=row.get("description") or "",
        stratigraphic_range=row.get("stratigraphic_range") or "",
        ecology=EcologicalData.from_dict(row.get("ecology")),
        image_url=row.get("image_url") or "",
    )


def fossil_to_row(fossil: Microfossil) -> Dict[str, Any]:
    return {
        "id": fossil.id,
        "taxonomy": fossil.taxonomy.to_dict(),
        "description": fossil.description,
        "stratigraphic_range": fossil.stratigraphic_range,
        "ecology": fossil.ecology.to_dict(),
        "image_url": fossil.image_url,
    }


def folder_from_row(row: Mapping[str, Any]) -> Folder:
    return Folder(id=row["id"], name=row["name"], user_id=row.get("user_id"), created_at=row.get("created_at"))


# --------------------------------------------------------------------------
# Table clients
# --------------------------------------------------------------------------

class TableClient(Protocol):
    """Minimal table API the store operations need.

    ``filters`` are column equality tests combined with AND; a ``None`` value
    matches NULL.  Writes return the affected rows as they are after the write.
    """

    def select(self, table: str, *, filters: Optional[Mapping[str, Any]] = None,
               order_by: Optional[str] = None) -> List[Dict[str, Any]]: ...

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]: ...

    def update(self, table: str, values: Mapping[str, Any], *,
               filters: Mapping[str, Any]) -> List[Dict[str, Any]]: ...

    def delete(self, table: str, *, filters: Mapping[str, Any]) -> int: ...


class SqliteTableClient:
    """:class:`TableClient` over a local SQLite file (``":memory:"`` works)."""

    def __init__(self, path: str | Path = ":memory:"):
        self.path = str(path)
        self._conn = sqlite3.connect(self.path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._conn.executescript(SCHEMA)
        self._columns = {
            t: [r["name"] for r in self._conn.execute(f"PRAGMA table_info({t});")]
            for t in JSON_COLUMNS
        }

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteTableClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- helpers -------------------------------------------------------------
    def _check(self, table: str, columns: Iterable[str]) -> None:
        if table not in self._columns:
            raise RemoteStoreError(f'relation "{table}" does not exist', table=table)
        for c in columns:
            if c not in self._columns[table]:
                raise RemoteStoreError(f'column "{c}" of relation "{table}" does not exist', table=table)

    def _encode(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        out = dict(row)
        for c in JSON_COLUMNS[table]:
            if c in out and out[c] is not None:
                out[c] = json.dumps(out[c])
        return out

    def _decode(self, table: str, row: sqlite3.Row) -> Dict[str, Any]:
        out = dict(row)
        for c in JSON_COLUMNS[table]:
            if out.get(c) is not None:
                out[c] = json.loads(out[c])
        return out

    @staticmethod
    def _where(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        if not filters:
            return "", []
        parts, params = [], []
        for col, val in filters.items():
            if val is None:
                parts.append(f"{col} IS NULL")
            else:
                parts.append(f"{col} = ?")
                params.append(val)
        return " WHERE " + " AND ".join(parts), params

    def _run(self, table: str, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, list(params))
        except sqlite3.IntegrityError as e:
            code = UNIQUE_VIOLATION if "UNIQUE" in str(e) else None
            raise RemoteStoreError(str(e), code=code, table=table) from e
        except sqlite3.Error as e:
            raise RemoteStoreError(str(e), table=table) from e

    # -- protocol ------------------------------------------------------------
    def select(self, table, *, filters=None, order_by=None):
        self._check(table, list(filters or {}) + ([order_by] if order_by else []))
        where, params = self._where(filters)
        order = f" ORDER BY {order_by}, rowid" if order_by else " ORDER BY rowid"
        cur = self._run(table, f"SELECT * FROM {table}{where}{order}", params)
        return [self._decode(table, r) for r in cur.fetchall()]

    def insert(self, table, rows):
        ids = []
        with self._conn:
            for row in rows:
                row = dict(row)
                if table in GENERATED_IDS and not row.get("id"):
                    row["id"] = str(uuid.uuid4())
                row.setdefault("created_at", _now())
                self._check(table, row)
                enc = self._encode(table, row)
                cols = ", ".join(enc)
                marks = ", ".join("?" for _ in enc)
                self._run(table, f"INSERT INTO {table} ({cols}) VALUES ({marks})", list(enc.values()))
                ids.append(row["id"])
        return [r for i in ids for r in self.select(table, filters={"id": i})]

    def update(self, table, values, *, filters):
        self._check(table, list(values) + list(filters))
        ids = [r["id"] for r in self.select(table, filters=filters)]
        if not ids:
            return []
        enc = self._encode(table, values)
        where, params = self._where(filters)
        sets = ", ".join(f"{c} = ?" for c in enc)
        with self._conn:
            self._run(table, f"UPDATE {table} SET {sets}{where}", list(enc.values()) + params)
        return [r for i in ids for r in self.select(table, filters={"id": i})]

    def delete(self, table, *, filters):
        self._check(table, filters)
        where, params = self._where(filters)
        with self._conn:
            cur = self._run(table, f"DELETE FROM {table}{where}", params)
        return cur.rowcount


# --------------------------------------------------------------------------
# Store operations
# --------------------------------------------------------------------------

class PaleoStore:
    """Core/section/fossil/folder operations over a :class:`TableClient`.

    Every backend failure propagates as :class:`RemoteStoreError`; nothing is
    retried here.
    """

    def __init__(self, client: TableClient):
        self.client = client

    # -- reads ---------------------------------------------------------------
    def fetch_folders_and_cores(self, user_id: str) -> Tuple[List[Core], List[Folder]]:
        cores = self.client.select("cores", filters={"user_id": user_id})
        folders = self.client.select("folders", filters={"user_id": user_id}, order_by="created_at")
        return [core_from_row(r) for r in cores], [folder_from_row(r) for r in folders]

    def fetch_sections_for_core(self, core_id: str) -> List[Section]:
        # averages are always recomputed from the fetched points
        rows = self.client.select("sections", filters={"core_id": core_id})
        return [refresh_lab_analysis(section_from_row(r)) for r in rows]

    def fetch_microfossils(self) -> List[Microfossil]:
        return [fossil_from_row(r) for r in self.client.select("microfossils")]

    # -- cores ---------------------------------------------------------------
    def save_core(self, core: Core, user_id: str, is_editing: bool) -> Core:
        row = core_to_row(core, user_id)
        if is_editing:
            payload = {k: v for k, v in row.items() if k not in ("id", "user_id")}
            data = self.client.update("cores", payload, filters={"id": core.id})
        else:
            if self.client.select("cores", filters={"id": core.id}):
                raise ValidationError(f'Core with ID "{core.id}" already exists. Please use a unique ID.')
            data = self.client.insert("cores", [row])
        if not data:
            raise RemoteStoreError("Failed to save core, no data returned.", table="cores")
        logger.info("Saved core %s (%s)", core.id, "update" if is_editing else "insert")
        return core_from_row(data[0])

    def delete_core(self, core_id: str) -> None:
        self.client.delete("sections", filters={"core_id": core_id})
        self.client.delete("cores", filters={"id": core_id})
        logger.info("Deleted core %s and its sections", core_id)

    def move_core(self, core_id: str, folder_id: Optional[str]) -> Core:
        data = self.client.update("cores", {"folder_id": folder_id}, filters={"id": core_id})
        if not data:
            raise RemoteStoreError("Failed to move core.", table="cores")
        return core_from_row(data[0])

    # -- sections ------------------------------------------------------------
    def save_section(self, section: Section, is_editing: bool) -> Section:
        if is_editing:
            return self.update_section(section)
        data = self.client.insert("sections", [section_to_row(section, include_core=True)])
        if not data:
            raise RemoteStoreError("Failed to save section.", table="sections")
        return section_from_row(data[0])

    def update_section(self, section: Section) -> Section:
        if not section.id:
            raise ValidationError("Cannot update a section that has no id")
        data = self.client.update("sections", section_to_row(section), filters={"id": section.id})
        if not data:
            raise RemoteStoreError("Failed to update section.", table="sections")
        return section_from_row(data[0])

    def delete_section(self, section_id: str) -> None:
        self.client.delete("sections", filters={"id": section_id})

    # -- fossils -------------------------------------------------------------
    def add_fossil(self, fossil: Microfossil) -> Microfossil:
        data = self.client.insert("microfossils", [fossil_to_row(fossil)])
        if not data:
            raise RemoteStoreError("Failed to add fossil.", table="microfossils")
        return fossil_from_row(data[0])

    # -- folders -------------------------------------------------------------
    def create_folder(self, name: str, user_id: str) -> Folder:
        if not (name or "").strip():
            raise ValidationError("Folder name cannot be empty")
        data = self.client.insert("folders", [{"name": name.strip(), "user_id": user_id}])
        if not data:
            raise RemoteStoreError("Failed to create folder.", table="folders")
        return folder_from_row(data[0])

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        if not (name or "").strip():
            raise ValidationError("Folder name cannot be empty")
        data = self.client.update("folders", {"name": name.strip()}, filters={"id": folder_id})
        if not data:
            raise RemoteStoreError("Failed to rename folder.", table="folders")
        return folder_from_row(data[0])

    def delete_folder(self, folder_id: str) -> None:
        self.client.update("cores", {"folder_id": None}, filters={"folder_id": folder_id})
        self.client.delete("folders", filters={"id": folder_id})
        logger.info("Deleted folder %s", folder_id)

    # -- samples -------------------------------------------------------------
    def load_sample_data(self, samples: Sequence[Tuple[Core, Sequence[Section]]], user_id: str) -> None:
        """Insert sample cores; an existing sample core gets its sections re-seeded."""
        for core, sections in samples:
            try:
                created = self.client.insert("cores", [core_to_row(core, user_id)])
            except RemoteStoreError as e:
                if e.code != UNIQUE_VIOLATION:
                    raise
                existing = self.client.select("cores", filters={"id": core.id})
                if not existing:
                    raise RemoteStoreError(f"Sample core {core.id} should exist but was not found.",
                                           table="cores") from e
                self.client.delete("sections", filters={"core_id": core.id})
                created = existing
            if not created:
                raise RemoteStoreError("Failed to create or find sample core.", table="cores")
            core_id = created[0]["id"]
            rows = []
            for s in sections:
                row = section_to_row(s, include_core=True)
                row["core_id"] = core_id
                rows.append(row)
            if rows:
                self.client.insert("sections", rows)
            logger.info("Seeded sample core %s with %d sections", core_id, len(rows))


__all__ = [
    "SCHEMA",
    "UNIQUE_VIOLATION",
    "placeholder_image",
    "core_from_row",
    "core_to_row",
    "section_from_row",
    "section_to_row",
    "fossil_from_row",
    "fossil_to_row",
    "folder_from_row",
    "TableClient",
    "SqliteTableClient",
    "PaleoStore",
]
