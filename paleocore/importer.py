"""Bulk CSV / ODV upload into a section.

The flow has two steps so the caller can review the column mapping:

1. :func:`propose_mapping` reads the header row and asks the AI service which
   standard key each column corresponds to.
2. :func:`parse_rows` turns the table into data points under the (possibly
   edited) mapping; :func:`import_into_section` then hands them to the
   reconciler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

import pandas as pd

from .constants import COMMON_DATA_KEYS
from .errors import AIServiceError, DataImportError, ValidationError
from .models import DataPoint, Section
from .parsing import parse_number
from .reconcile import KeyFactory, MergeResult, apply_data_points

logger = logging.getLogger(__name__)

FORMATS = ("csv", "odv")
ODV_COMMENT = "//"


@dataclass
class ImportProposal:
    headers: List[str]
    mapping: Dict[str, Optional[str]]
    # set when the AI proposal could not be used and the mapping is all None
    note: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


def format_from_path(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return "csv"
    if suffix in (".txt", ".odv", ".tsv", ".tab"):
        return "odv"
    raise ValidationError(f"Cannot infer import format from '{path}'; use csv or odv")


def _check_format(fmt: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValidationError(f"Unknown import format '{fmt}'; expected one of {FORMATS}")
    return fmt


def read_table(text: str, fmt: str) -> pd.DataFrame:
    """Parse upload text into a string-typed frame (blank cells are "")."""
    fmt = _check_format(fmt)
    if fmt == "odv":
        text = "\n".join(ln for ln in text.splitlines() if not ln.lstrip().startswith(ODV_COMMENT))
        sep = "\t"
    else:
        sep = ","
    try:
        raw = pd.read_csv(StringIO(text), sep=sep, header=None, nrows=1, dtype=str, keep_default_na=False)
        df = pd.read_csv(
            StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as e:
        raise DataImportError("Could not parse headers from the file. Is it empty or malformed?") from e
    except pd.errors.ParserError as e:
        raise DataImportError(f"Error parsing file: {e}") from e
    # pandas renames repeated headers to "Name.1", which is not a column of the file
    names = [str(c).strip() for c in raw.iloc[0]] if len(raw) else []
    dupes = sorted({n for n in names if n and names.count(n) > 1})
    if dupes:
        raise DataImportError(f"Duplicate column headers: {', '.join(dupes)}. Rename them and upload again.")
    df.columns = [str(c).strip() for c in df.columns]
    return df


def read_headers(text: str, fmt: str) -> List[str]:
    headers = [h for h in read_table(text, fmt).columns if h]
    if not headers:
        raise DataImportError("Could not parse headers from the file. Is it empty or malformed?")
    return headers


def propose_mapping(
    headers: Sequence[str],
    ai: Any,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
) -> ImportProposal:
    """Ask ``ai`` for a header mapping, falling back to "do not import" for all.

    ``overrides`` are applied on top of the proposal; a value of ``None``
    excludes that column.
    """
    headers = list(headers)
    if not headers:
        raise DataImportError("Could not parse headers from the file. Is it empty or malformed?")
    note = None
    try:
        proposed = ai.map_headers(headers)
    except AIServiceError as e:
        logger.warning("AI header mapping unavailable, defaulting every column to skip: %s", e)
        proposed = {}
        note = str(e)
    mapping: Dict[str, Optional[str]] = {}
    for h in headers:
        key = proposed.get(h)
        mapping[h] = key if key in COMMON_DATA_KEYS else None
    warnings = []
    for h, key in (overrides or {}).items():
        if h not in mapping:
            raise ValidationError(f"Mapping override for unknown column '{h}'")
        if key is not None and key not in COMMON_DATA_KEYS:
            raise ValidationError(f"'{key}' is not a recognised data key")
        mapping[h] = key
    targets = [k for k in mapping.values() if k]
    dupes = sorted({k for k in targets if targets.count(k) > 1})
    if dupes:
        warnings.append(f"Several columns map to {', '.join(dupes)}; the rightmost wins.")
    return ImportProposal(headers, mapping, note, warnings)


def parse_rows(frame: pd.DataFrame, mapping: Mapping[str, Optional[str]]) -> List[DataPoint]:
    columns = [(h, k) for h, k in mapping.items() if k and h in frame.columns]
    rows: List[DataPoint] = []
    for record in frame.to_dict(orient="records"):
        point: DataPoint = {}
        for header, key in columns:
            cell = record.get(header)
            if cell is None or str(cell).strip() == "":
                continue
            if key == "subsection":
                point[key] = str(cell).strip()
                continue
            value = parse_number(cell)
            if value is not None:
                point[key] = value
        if point:
            rows.append(point)
    return rows


def import_into_section(
    section: Section,
    text: str,
    fmt: str,
    ai: Any,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    key_factory: Optional[KeyFactory] = None,
) -> Tuple[Section, MergeResult, ImportProposal]:
    frame = read_table(text, fmt)
    headers = [h for h in frame.columns if h]
    if not headers:
        raise DataImportError("Could not parse headers from the file. Is it empty or malformed?")
    proposal = propose_mapping(headers, ai, overrides)
    rows = parse_rows(frame, proposal.mapping)
    if not rows:
        raise DataImportError("No valid data rows found to import based on your mapping.")
    updated, result = apply_data_points(section, rows, key_factory)
    logger.info("Imported %d rows into section %s: %s", len(rows), section.id, result.message())
    return updated, result, proposal


__all__ = [
    "FORMATS",
    "ImportProposal",
    "format_from_path",
    "read_table",
    "read_headers",
    "propose_mapping",
    "parse_rows",
    "import_into_section",
]
