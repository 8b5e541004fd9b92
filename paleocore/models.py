"""Application-side data shapes.

Cores, sections, microfossils and folders are plain dataclasses.  A data
point is an ordinary ``dict`` (proxy name -> value, plus the ``subsection``
key and optionally ``depth``/``age``) so that arbitrary imported proxies can
travel through the reconciler untouched.

``to_dict`` renders the camelCase shape used for JSON output and for AI
prompts; the snake_case store rows are handled by :mod:`paleocore.gateway`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

DataPoint = Dict[str, Any]
LabAnalysis = Dict[str, float]


@dataclass
class Location:
    lat: float
    lon: float


@dataclass
class Core:
    id: str
    name: str
    location: Location
    water_depth: float
    project: str
    folder_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": asdict(self.location),
            "waterDepth": self.water_depth,
            "project": self.project,
            "folderId": self.folder_id,
            "userId": self.user_id,
            "createdAt": self.created_at,
        }


@dataclass
class SectionFossilRecord:
    fossil_id: str
    abundance: str = "Present"
    preservation: str = "Good"
    observations: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fossilId": self.fossil_id,
            "abundance": self.abundance,
            "preservation": self.preservation,
            "observations": self.observations,
        }


@dataclass
class Section:
    id: Optional[str]
    core_id: str
    name: str
    section_depth: float = 0.0
    sample_interval: Optional[float] = None
    recovery_date: str = ""
    collection_time: Optional[str] = None
    epoch: str = ""
    geological_period: str = "Indeterminate"
    age_range: str = ""
    data_points: List[DataPoint] = field(default_factory=list)
    microfossil_records: List[SectionFossilRecord] = field(default_factory=list)
    lab_analysis: LabAnalysis = field(default_factory=dict)
    summary: Optional[str] = None
    section_image: Optional[str] = None
    collector: Optional[str] = None
    lithology: Optional[str] = None
    munsell_color: Optional[str] = None
    grain_size: Optional[str] = None
    tephra_layers: Optional[str] = None
    paleomagnetic_reversals: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "coreId": self.core_id,
            "name": self.name,
            "sectionDepth": self.section_depth,
            "sampleInterval": self.sample_interval,
            "recoveryDate": self.recovery_date,
            "collectionTime": self.collection_time,
            "epoch": self.epoch,
            "geologicalPeriod": self.geological_period,
            "ageRange": self.age_range,
            "dataPoints": [dict(p) for p in self.data_points],
            "microfossilRecords": [r.to_dict() for r in self.microfossil_records],
            "labAnalysis": dict(self.lab_analysis),
            "summary": self.summary,
            "collector": self.collector,
            "lithology": self.lithology,
            "munsellColor": self.munsell_color,
            "grainSize": self.grain_size,
            "tephraLayers": self.tephra_layers,
            "paleomagneticReversals": self.paleomagnetic_reversals,
            "createdAt": self.created_at,
        }


@dataclass
class Taxonomy:
    kingdom: str = ""
    phylum: str = ""
    class_: str = ""
    order: str = ""
    family: str = ""
    genus: str = "Unknown"
    species: str = "Fossil"

    def to_dict(self) -> Dict[str, str]:
        d = asdict(self)
        d["class"] = d.pop("class_")
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any] | None) -> "Taxonomy":
        if not d:
            return cls()
        return cls(
            kingdom=d.get("kingdom", "") or "",
            phylum=d.get("phylum", "") or "",
            class_=d.get("class", d.get("class_", "")) or "",
            order=d.get("order", "") or "",
            family=d.get("family", "") or "",
            genus=d.get("genus", "") or "",
            species=d.get("species", "") or "",
        )


@dataclass
class EcologicalData:
    temperature_range: str = ""
    depth_habitat: str = ""
    notes: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "temperatureRange": self.temperature_range,
            "depthHabitat": self.depth_habitat,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any] | None) -> "EcologicalData":
        if not d:
            return cls()
        return cls(
            temperature_range=d.get("temperatureRange", "") or "",
            depth_habitat=d.get("depthHabitat", "") or "",
            notes=d.get("notes", "") or "",
        )


@dataclass
class Microfossil:
    id: str
    taxonomy: Taxonomy = field(default_factory=Taxonomy)
    description: str = ""
    stratigraphic_range: str = ""
    ecology: EcologicalData = field(default_factory=EcologicalData)
    image_url: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.taxonomy.genus} {self.taxonomy.species}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "taxonomy": self.taxonomy.to_dict(),
            "description": self.description,
            "stratigraphicRange": self.stratigraphic_range,
            "ecology": self.ecology.to_dict(),
            "imageUrl": self.image_url,
        }


@dataclass
class Folder:
    id: str
    name: str
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "userId": self.user_id, "createdAt": self.created_at}


@dataclass(frozen=True)
class TiePoint:
    section_id: str
    depth: float
    age: float


@dataclass(frozen=True)
class SpliceInterval:
    section_id: str
    start_age: Optional[float] = None
    end_age: Optional[float] = None


@dataclass
class PaleoEvent:
    event_name: str
    start_age: float
    end_age: float
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventName": self.event_name,
            "startAge": self.start_age,
            "endAge": self.end_age,
            "description": self.description,
        }


__all__ = [
    "DataPoint",
    "LabAnalysis",
    "Location",
    "Core",
    "SectionFossilRecord",
    "Section",
    "Taxonomy",
    "EcologicalData",
    "Microfossil",
    "Folder",
    "TiePoint",
    "SpliceInterval",
    "PaleoEvent",
]
