"""Session object tying the store, the AI service and the local state.

Every mutating method performs the store call first and dispatches the
matching action only after it succeeds, so a failed write leaves
:attr:`Workspace.state` exactly as it was.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple
import logging

from . import agemodel, fossils, importer, reconcile
from .errors import ValidationError
from .gateway import PaleoStore
from .models import Core, Folder, Microfossil, PaleoEvent, Section, SectionFossilRecord, SpliceInterval, TiePoint
from .presets import SampleCore, sample_cores
from .splice import build_composite_splice
from .state import (
    AppState,
    CalibrationApplied,
    CoreDeleted,
    CoreMoved,
    CoreSaved,
    CoreSelected,
    CoresLoaded,
    FolderCreated,
    FolderDeleted,
    FolderRenamed,
    FossilAdded,
    SectionDeleted,
    SectionSaved,
    SectionsLoaded,
    SpliceIntervalSet,
    TiePointsSet,
    reduce,
)

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, store: PaleoStore, ai: Any, user_id: str, state: Optional[AppState] = None):
        self.store = store
        self.ai = ai
        self.user_id = user_id
        self.state = state or AppState()

    def dispatch(self, action) -> AppState:
        self.state = reduce(self.state, action)
        return self.state

    # -- lookups -------------------------------------------------------------
    def find_section(self, section_id: str) -> Section:
        for sections in self.state.sections.values():
            for s in sections:
                if s.id == section_id:
                    return s
        raise ValidationError(f"Section '{section_id}' is not loaded")

    def require_core(self, core_id: str) -> Core:
        core = self.state.core(core_id)
        if core is None:
            raise ValidationError(f"Unknown core '{core_id}'")
        return core

    # -- loading -------------------------------------------------------------
    def load(self) -> AppState:
        cores, folders = self.store.fetch_folders_and_cores(self.user_id)
        fossil_list = self.store.fetch_microfossils()
        return self.dispatch(CoresLoaded(cores, folders, fossil_list))

    def load_sections(self, core_id: str) -> List[Section]:
        sections = self.store.fetch_sections_for_core(core_id)
        self.dispatch(SectionsLoaded(core_id, sections))
        return sections

    def load_sample_data(self, samples: Optional[Sequence[SampleCore]] = None) -> AppState:
        self.store.load_sample_data(samples if samples is not None else sample_cores(), self.user_id)
        return self.load()

    def select_core(self, core_id: Optional[str]) -> AppState:
        return self.dispatch(CoreSelected(core_id))

    # -- cores and folders ---------------------------------------------------
    def save_core(self, core: Core) -> Core:
        is_editing = self.state.core(core.id) is not None
        saved = self.store.save_core(core, self.user_id, is_editing)
        self.dispatch(CoreSaved(saved))
        return saved

    def delete_core(self, core_id: str) -> None:
        self.store.delete_core(core_id)
        self.dispatch(CoreDeleted(core_id))

    def move_core(self, core_id: str, folder_id: Optional[str]) -> Core:
        moved = self.store.move_core(core_id, folder_id)
        self.dispatch(CoreMoved(moved))
        return moved

    def create_folder(self, name: str) -> Folder:
        folder = self.store.create_folder(name, self.user_id)
        self.dispatch(FolderCreated(folder))
        return folder

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        folder = self.store.rename_folder(folder_id, name)
        self.dispatch(FolderRenamed(folder))
        return folder

    def delete_folder(self, folder_id: str) -> None:
        self.store.delete_folder(folder_id)
        self.dispatch(FolderDeleted(folder_id))

    # -- sections ------------------------------------------------------------
    def save_section(self, section: Section) -> Section:
        saved = self.store.save_section(section, is_editing=bool(section.id))
        self.dispatch(SectionSaved(saved))
        return saved

    def delete_section(self, core_id: str, section_id: str) -> None:
        self.store.delete_section(section_id)
        self.dispatch(SectionDeleted(core_id, section_id))

    def _commit_section(self, section: Section) -> Section:
        saved = self.store.update_section(section)
        self.dispatch(SectionSaved(saved))
        return saved

    def add_data_point(self, section_id: str, form: Mapping[str, Any]) -> Tuple[Section, reconcile.RowOutcome]:
        updated, outcome = reconcile.add_manual_point(self.find_section(section_id), form)
        return self._commit_section(updated), outcome

    def import_data(
        self,
        section_id: str,
        text: str,
        fmt: str,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
    ) -> Tuple[Section, reconcile.MergeResult, importer.ImportProposal]:
        updated, result, proposal = importer.import_into_section(
            self.find_section(section_id), text, fmt, self.ai, overrides
        )
        return self._commit_section(updated), result, proposal

    def set_fossil_record(self, section_id: str, record: SectionFossilRecord) -> Section:
        return self._commit_section(fossils.upsert_fossil_record(self.find_section(section_id), record))

    def remove_fossil_record(self, section_id: str, fossil_id: str) -> Section:
        return self._commit_section(fossils.remove_fossil_record(self.find_section(section_id), fossil_id))

    def add_fossil(self, fossil: Microfossil) -> Microfossil:
        saved = self.store.add_fossil(fossils.validate_microfossil(fossil))
        self.dispatch(FossilAdded(saved))
        return saved

    # -- AI ------------------------------------------------------------------
    def summarize(self, section_id: str) -> Section:
        section = self.find_section(section_id)
        text = self.ai.summarize_section(section, self.state.microfossils)
        return self._commit_section(replace(section, summary=text))

    def ask(self, section_id: str, question: str) -> Iterator[str]:
        return self.ai.stream_analysis(self.find_section(section_id), question)

    def identify_image(self, path) -> Tuple[str, Microfossil]:
        data, mime = fossils.load_image(path)
        text = self.ai.identify_fossil(data, mime)
        draft = fossils.parse_fossil_analysis(text)
        draft.image_url = fossils.image_data_uri(data, mime)
        return text, draft

    # -- synthesis -----------------------------------------------------------
    def set_tie_points(self, tie_points: Sequence[TiePoint]) -> AppState:
        return self.dispatch(TiePointsSet(tie_points))

    def run_age_model(self, core_id: str) -> List[Section]:
        self.require_core(core_id)
        sections = list(self.state.sections_for(core_id))
        ids = {s.id for s in sections}
        ties = [tp for tp in self.state.tie_points if tp.section_id in ids]
        calibrated = agemodel.run_age_model(sections, ties, self.ai)
        self.dispatch(CalibrationApplied(calibrated))
        return calibrated

    def set_splice_interval(self, interval: SpliceInterval) -> AppState:
        return self.dispatch(SpliceIntervalSet(interval))

    def calibrated_sections(self, core_id: str) -> List[Section]:
        return [self.state.calibrated.get(s.id, s) for s in self.state.sections_for(core_id)]

    def composite_splice(self, core_id: str) -> List[Dict[str, Any]]:
        return build_composite_splice(self.state.splice_intervals, self.calibrated_sections(core_id))

    def detect_events(self, points: Sequence[Mapping[str, Any]]) -> List[PaleoEvent]:
        return self.ai.detect_paleo_events(points)


__all__ = ["Workspace"]
