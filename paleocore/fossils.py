"""Microfossil reference helpers: image loading, AI reply parsing, records."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional, Tuple
import base64
import logging
import mimetypes
import re

from .constants import ABUNDANCE_LEVELS, MAX_IMAGE_BYTES, PRESERVATION_LEVELS
from .errors import ValidationError
from .models import EcologicalData, Microfossil, Section, SectionFossilRecord, Taxonomy

logger = logging.getLogger(__name__)

_HEADING = re.compile(r"^###\s+(.*)")

# planktonic foraminifera are the usual subject of an uploaded image
DEFAULT_TAXONOMY = {
    "kingdom": "Rhizaria",
    "phylum": "Foraminifera",
    "class": "Globothalamea",
    "order": "Rotaliida",
}


def load_image(path: str | Path) -> Tuple[bytes, str]:
    """Read an image for identification; returns ``(data, mime_type)``."""
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"Image not found: {path}")
    size = path.stat().st_size
    if size > MAX_IMAGE_BYTES:
        raise ValidationError("File is too large. Please select an image under 4MB.")
    mime, _ = mimetypes.guess_type(path.name)
    if not mime or not mime.startswith("image/"):
        raise ValidationError(f"{path.name} does not look like an image file")
    return path.read_bytes(), mime


def image_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def split_headings(text: str) -> Dict[str, str]:
    sections: Dict[str, str] = {}
    current: Optional[str] = None
    for line in text.split("\n"):
        m = _HEADING.match(line)
        if m:
            current = m.group(1).strip().lower()
            sections[current] = ""
        elif current and line.strip():
            cleaned = re.sub(r"^[-*]", "", line.strip()).strip()
            sections[current] += cleaned + " "
    return {k: v.strip() for k, v in sections.items()}


def suggest_fossil_id(genus: str, species: str) -> str:
    if not genus or not species:
        return ""
    return f"{genus[0].upper()}_{species.lower()}"


def parse_fossil_analysis(text: str) -> Microfossil:
    """Turn an image-identification reply into a draft :class:`Microfossil`.

    The first two words under *Identification* become genus and species; the
    morphology and paleoecology paragraphs fill description and ecology notes.
    The draft id is ``G_species`` (empty when no binomial was found).
    """
    parts = split_headings(text)
    taxonomy = Taxonomy(**{k if k != "class" else "class_": v for k, v in DEFAULT_TAXONOMY.items()},
                        genus="", species="")
    ident = parts.get("identification", "")
    if ident:
        words = ident.split()
        if len(words) >= 2:
            taxonomy.genus, taxonomy.species = words[0], words[1]
        else:
            taxonomy.genus = ident
    return Microfossil(
        id=suggest_fossil_id(taxonomy.genus, taxonomy.species),
        taxonomy=taxonomy,
        description=parts.get("morphological description", ""),
        ecology=EcologicalData(notes=parts.get("paleoecological significance", "")),
    )


def validate_microfossil(fossil: Microfossil) -> Microfossil:
    if not (fossil.id or "").strip():
        raise ValidationError("Fossil ID is required.")
    if not fossil.taxonomy.genus.strip() or not fossil.taxonomy.species.strip():
        raise ValidationError("Genus and species are required.")
    return fossil


def upsert_fossil_record(section: Section, record: SectionFossilRecord) -> Section:
    if not record.fossil_id:
        raise ValidationError("A fossil record needs a fossil id")
    if record.abundance not in ABUNDANCE_LEVELS:
        raise ValidationError(f"Abundance must be one of {', '.join(ABUNDANCE_LEVELS)}")
    if record.preservation not in PRESERVATION_LEVELS:
        raise ValidationError(f"Preservation must be one of {', '.join(PRESERVATION_LEVELS)}")
    records = list(section.microfossil_records)
    for i, r in enumerate(records):
        if r.fossil_id == record.fossil_id:
            records[i] = record
            break
    else:
        records.append(record)
    return replace(section, microfossil_records=records)


def remove_fossil_record(section: Section, fossil_id: str) -> Section:
    records = [r for r in section.microfossil_records if r.fossil_id != fossil_id]
    return replace(section, microfossil_records=records)


__all__ = [
    "DEFAULT_TAXONOMY",
    "load_image",
    "image_data_uri",
    "split_headings",
    "suggest_fossil_id",
    "parse_fossil_analysis",
    "validate_microfossil",
    "upsert_fossil_record",
    "remove_fossil_record",
]
