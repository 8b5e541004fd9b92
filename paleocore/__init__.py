"""
paleocore - sediment core records, proxy series, age models and AI analysis.
"""

__version__ = "0.1.0"

from .errors import (
    PaleoCoreError,
    ValidationError,
    DataImportError,
    RemoteStoreError,
    AIServiceError,
    AIDisabledError,
    AgeModelError,
)
from .models import (
    Core,
    Location,
    Section,
    SectionFossilRecord,
    Microfossil,
    Taxonomy,
    EcologicalData,
    Folder,
    TiePoint,
    SpliceInterval,
    PaleoEvent,
)
from .averages import compute_lab_analysis
from .reconcile import ImportKeyFactory, MergeResult, merge_data_points, apply_data_points, add_manual_point
from .importer import read_headers, propose_mapping, parse_rows, import_into_section
from .agemodel import build_request as build_age_model_request, run_age_model
from .splice import build_composite_splice
from .ai import AiService
from .fossils import parse_fossil_analysis, load_image
from .gateway import PaleoStore, SqliteTableClient, TableClient
from .state import AppState, reduce, filter_cores, filter_sections_by_epoch
from .workspace import Workspace
from .config import Settings, load_settings
from .export import export_folder_to_odv
from .report_pdf import build_core_report_pdf

__all__ = [
    "__version__",
    "PaleoCoreError", "ValidationError", "DataImportError", "RemoteStoreError",
    "AIServiceError", "AIDisabledError", "AgeModelError",
    "Core", "Location", "Section", "SectionFossilRecord", "Microfossil", "Taxonomy",
    "EcologicalData", "Folder", "TiePoint", "SpliceInterval", "PaleoEvent",
    "compute_lab_analysis",
    "ImportKeyFactory", "MergeResult", "merge_data_points", "apply_data_points", "add_manual_point",
    "read_headers", "propose_mapping", "parse_rows", "import_into_section",
    "build_age_model_request", "run_age_model",
    "build_composite_splice",
    "AiService",
    "parse_fossil_analysis", "load_image",
    "PaleoStore", "SqliteTableClient", "TableClient",
    "AppState", "reduce", "filter_cores", "filter_sections_by_epoch",
    "Workspace",
    "Settings", "load_settings",
    "export_folder_to_odv",
    "build_core_report_pdf",
]
