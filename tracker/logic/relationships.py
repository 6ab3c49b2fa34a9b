"""
Relationship Store

Owns the saved/target lifecycle of a user's programs. The in-memory map is a
write-through cache of the persistence port: an entry is replaced only after
the port confirmed the write, so a rejected write leaves the cache at the
last known-good value.

Not thread-safe on its own; ProgramTracker serialises access.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .checklist import generate_for_program
from .constants import ApplicationStatus
from .contracts import (
    ApplicationDocument,
    LetterOfRecommendation,
    Program,
    ProgramId,
    ProgramRelationship,
)
from .errors import InvariantViolation, NotFound, PersistenceFailure
from .ports import PersistencePort, ProgramCatalog
from .progress import calculate_progress

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RelationshipStore:
    def __init__(self, user_id: str, port: PersistencePort, catalog: ProgramCatalog,
                 write_retries: int = 1):
        self.user_id = user_id
        self.port = port
        self.catalog = catalog
        self.write_retries = max(0, write_retries)
        self._relationships: Dict[ProgramId, ProgramRelationship] = {}

    # =========================================================================
    # PORT ACCESS
    # =========================================================================

    def write(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a port write, retrying rejected attempts before giving up."""
        attempts = self.write_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except PersistenceFailure as e:
                if attempt == attempts:
                    logger.error(f"{operation} failed after {attempts} attempt(s): {e}")
                    raise
                logger.warning(f"{operation} rejected (attempt {attempt}/{attempts}), retrying: {e}")

    def load(self) -> None:
        relationships = self.port.list_relationships_for_user(self.user_id)
        self._relationships = {rel.program_id: rel for rel in relationships}
        for rel in relationships:
            if rel.is_target and not rel.checklist:
                self._repair_empty_checklist(rel)
            elif rel.progress != calculate_progress(rel.checklist):
                self._repair_progress(rel)
        logger.info(f"Loaded {len(self._relationships)} program relationship(s) for {self.user_id}")

    def _repair_progress(self, rel: ProgramRelationship) -> None:
        """Rewrite a stored progress that disagrees with the stored checklist."""
        repaired = rel.model_copy(update={"progress": calculate_progress(rel.checklist)})
        try:
            self.write("repair_progress", lambda: self.port.upsert_relationship(self.user_id, repaired))
        except PersistenceFailure:
            logger.error(f"Stored progress for {rel.program_id} is stale and could not be repaired")
            return
        logger.warning(f"Repaired stored progress for {rel.program_id}: {rel.progress} -> {repaired.progress}")
        self._relationships[rel.program_id] = repaired

    def _repair_empty_checklist(self, rel: ProgramRelationship) -> None:
        program = self.catalog.get_program(rel.program_id)
        if program is None:
            return
        checklist = generate_for_program(program)
        repaired = rel.model_copy(update={
            "checklist": checklist,
            "progress": calculate_progress(checklist),
        })
        try:
            self.write("repair_checklist", lambda: self.port.upsert_checklist_items(
                self.user_id, rel.program_id, checklist, repaired.progress))
        except PersistenceFailure:
            logger.error(f"Target {rel.program_id} has no checklist and could not be repaired")
            return
        self._relationships[rel.program_id] = repaired

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get(self, program_id: ProgramId) -> Optional[ProgramRelationship]:
        return self._relationships.get(ProgramId.parse(program_id))

    def require(self, program_id: ProgramId) -> ProgramRelationship:
        rel = self.get(program_id)
        if rel is None:
            raise NotFound(f"Program {ProgramId.parse(program_id)} is not saved or targeted")
        return rel

    def require_target(self, program_id: ProgramId) -> ProgramRelationship:
        rel = self.require(program_id)
        if not rel.is_target:
            raise InvariantViolation(f"Program {rel.program_id} is saved, not a target")
        return rel

    def require_program(self, program_id: ProgramId) -> Program:
        program = self.catalog.get_program(ProgramId.parse(program_id))
        if program is None:
            raise NotFound(f"Program {ProgramId.parse(program_id)} is not in the catalog")
        return program

    def all(self) -> List[ProgramRelationship]:
        return list(self._relationships.values())

    def targets(self) -> List[ProgramRelationship]:
        return [rel for rel in self._relationships.values() if rel.is_target]

    def saved(self) -> List[ProgramRelationship]:
        return [rel for rel in self._relationships.values() if not rel.is_target]

    def commit(self, relationship: ProgramRelationship) -> None:
        """Record a relationship whose write the port has confirmed."""
        self._relationships[relationship.program_id] = relationship

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def save(self, program_id: ProgramId) -> ProgramRelationship:
        program = self.require_program(program_id)
        existing = self.get(program.id)
        if existing is not None:
            return existing

        rel = ProgramRelationship(program_id=program.id)
        self.write("save", lambda: self.port.upsert_relationship(self.user_id, rel))
        self.commit(rel)
        logger.info(f"Saved program {program.id} ({program.school_name})")
        return rel

    def convert_to_target(self, program_id: ProgramId) -> ProgramRelationship:
        """
        Make the program a target with a freshly generated default checklist.

        Prior checklist state, custom items included, is discarded. The
        relationship and its new checklist are written as one unit.
        """
        program = self.require_program(program_id)
        existing = self.get(program.id)
        checklist = generate_for_program(program)

        if existing is None:
            rel = ProgramRelationship(program_id=program.id, is_target=True, checklist=checklist)
        else:
            update = {"is_target": True, "checklist": checklist}
            if not existing.is_target:
                update["status"] = ApplicationStatus.RESEARCHING
            rel = existing.model_copy(update=update)
        rel = rel.model_copy(update={"progress": calculate_progress(checklist)})

        self.write("convert_to_target", lambda: self.port.upsert_relationship(
            self.user_id, rel, replace_sub_records=True))
        self.commit(rel)
        hidden = [item.id for item in checklist if item.hidden]
        logger.info(f"Converted {program.id} to target; hidden items: {hidden or 'none'}")
        return rel

    def revert_to_saved(self, program_id: ProgramId) -> ProgramRelationship:
        """Drop back to saved. Checklist, LORs and documents are destroyed."""
        existing = self.require(program_id)
        if not existing.is_target:
            return existing

        rel = existing.model_copy(update={
            "is_target": False,
            "status": ApplicationStatus.RESEARCHING,
            "notes": "",
            "progress": 0,
            "checklist": [],
            "lors": [],
            "documents": [],
        })
        self.write("revert_to_saved", lambda: self.port.upsert_relationship(
            self.user_id, rel, replace_sub_records=True))
        self.commit(rel)
        logger.info(f"Reverted {rel.program_id} to saved; target records deleted")
        return rel

    def remove(self, program_id: ProgramId, was_target: Optional[bool] = None) -> None:
        existing = self.require(program_id)
        if was_target is not None and was_target != existing.is_target:
            logger.warning(
                f"remove({existing.program_id}) called with was_target={was_target} "
                f"but relationship is_target={existing.is_target}"
            )
        self.write("remove", lambda: self.port.delete_relationship(self.user_id, existing.program_id))
        del self._relationships[existing.program_id]
        logger.info(f"Removed program {existing.program_id}")

    # =========================================================================
    # TARGET DATA
    # =========================================================================

    def update_target_data(self, program_id: ProgramId, status=None,
                           notes: Optional[str] = None) -> ProgramRelationship:
        existing = self.require(program_id)
        update = {}
        if status is not None:
            update["status"] = ApplicationStatus(status)
        if notes is not None:
            update["notes"] = notes
        if not update:
            return existing

        rel = existing.model_copy(update=update)
        self.write("update_target_data", lambda: self.port.upsert_relationship(self.user_id, rel))
        self.commit(rel)
        return rel

    def update_lors(self, program_id: ProgramId,
                    lors: Iterable[LetterOfRecommendation]) -> ProgramRelationship:
        existing = self.require_target(program_id)
        lors = [LetterOfRecommendation.model_validate(lor) for lor in lors]
        self.write("update_lors", lambda: self.port.replace_lors(
            self.user_id, existing.program_id, lors))
        rel = existing.model_copy(update={"lors": lors})
        self.commit(rel)
        return rel

    def update_documents(self, program_id: ProgramId,
                         documents: Iterable[ApplicationDocument]) -> ProgramRelationship:
        existing = self.require_target(program_id)
        documents = [ApplicationDocument.model_validate(d) for d in documents]
        self.write("update_documents", lambda: self.port.replace_documents(
            self.user_id, existing.program_id, documents))
        rel = existing.model_copy(update={"documents": documents})
        self.commit(rel)
        return rel

    def update_target_details(self, program_id: ProgramId, status=None, notes: Optional[str] = None,
                              lors: Optional[Iterable[LetterOfRecommendation]] = None,
                              documents: Optional[Iterable[ApplicationDocument]] = None,
                              ) -> ProgramRelationship:
        """
        Apply status, notes, LORs and documents together in one port write.

        Everything is validated before the write, so a rejected update leaves
        both the store and the cache as they were.
        """
        if lors is not None or documents is not None:
            existing = self.require_target(program_id)
        else:
            existing = self.require(program_id)

        update = {}
        if status is not None:
            update["status"] = ApplicationStatus(status)
        if notes is not None:
            update["notes"] = notes
        if lors is not None:
            update["lors"] = [LetterOfRecommendation.model_validate(lor) for lor in lors]
        if documents is not None:
            update["documents"] = [ApplicationDocument.model_validate(d) for d in documents]
        if not update:
            return existing

        rel = existing.model_copy(update=update)
        replace = lors is not None or documents is not None
        self.write("update_target_details", lambda: self.port.upsert_relationship(
            self.user_id, rel, replace_sub_records=replace))
        self.commit(rel)
        return rel
