"""
SQL Tracker Store

Remote-relational implementation of the persistence port (SQLAlchemy).
Each call is one transaction: it commits, or rolls back and raises
PersistenceFailure. Rows are translated to and from the tracker contracts
here so no table naming leaks into the engine.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from db import SessionLocal, session_scope
from tracker.models import (
    ChecklistEntry,
    DashboardTaskEntry,
    DocumentEntry,
    GlobalTaskEntry,
    LorEntry,
    SavedProgram,
)

from .contracts import (
    ApplicationDocument,
    ChecklistItem,
    DashboardTask,
    GlobalTask,
    LetterOfRecommendation,
    ProgramId,
    ProgramRelationship,
    utcnow,
)
from .errors import PersistenceFailure
from .ports import PersistencePort

logger = logging.getLogger(__name__)


# =============================================================================
# ROW <-> CONTRACT MAPPING
# =============================================================================

def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _item_from_row(entry: ChecklistEntry) -> ChecklistItem:
    return ChecklistItem(
        id=entry.item_key,
        label=entry.label,
        completed=entry.completed,
        is_default=entry.is_default,
        hidden=entry.hidden,
        hidden_reason=entry.hidden_reason,
        sort_order=entry.sort_order,
        completed_at=_aware(entry.completed_at),
    )


def _apply_item(entry: ChecklistEntry, item: ChecklistItem) -> None:
    entry.label = item.label
    entry.completed = item.completed
    entry.is_default = item.is_default
    entry.hidden = item.hidden
    entry.hidden_reason = item.hidden_reason.value if item.hidden_reason else None
    entry.sort_order = item.sort_order
    entry.completed_at = item.completed_at


def _new_item_row(user_id: str, item: ChecklistItem) -> ChecklistEntry:
    entry = ChecklistEntry(user_id=user_id, item_key=item.id)
    _apply_item(entry, item)
    return entry


def _lor_from_row(entry: LorEntry) -> LetterOfRecommendation:
    return LetterOfRecommendation(
        id=entry.lor_key,
        person_name=entry.person_name,
        relationship=entry.relationship_type,
        email=entry.email,
        status=entry.status,
        requested_date=entry.requested_date,
        received_date=entry.received_date,
        notes=entry.notes or "",
    )


def _new_lor_row(user_id: str, lor: LetterOfRecommendation) -> LorEntry:
    return LorEntry(
        user_id=user_id,
        lor_key=lor.id,
        person_name=lor.person_name,
        relationship_type=lor.relationship,
        email=lor.email,
        status=lor.status.value,
        requested_date=lor.requested_date,
        received_date=lor.received_date,
        notes=lor.notes,
    )


def _document_from_row(entry: DocumentEntry) -> ApplicationDocument:
    return ApplicationDocument(
        id=entry.document_key,
        name=entry.name,
        document_type=entry.document_type,
        file_url=entry.file_url,
        uploaded_at=_aware(entry.uploaded_at),
    )


def _new_document_row(user_id: str, document: ApplicationDocument) -> DocumentEntry:
    return DocumentEntry(
        user_id=user_id,
        document_key=document.id,
        name=document.name,
        document_type=document.document_type,
        file_url=document.file_url,
        uploaded_at=document.uploaded_at,
    )


def _relationship_from_row(row: SavedProgram) -> ProgramRelationship:
    return ProgramRelationship(
        program_id=ProgramId(school_id=row.school_id),
        is_target=row.is_target,
        status=row.status,
        notes=row.notes or "",
        progress=row.progress or 0,
        saved_at=_aware(row.saved_at) or utcnow(),
        checklist=[_item_from_row(c) for c in row.checklists],
        lors=[_lor_from_row(l) for l in row.lors],
        documents=[_document_from_row(d) for d in row.documents],
    )


def _global_task_from_row(row: GlobalTaskEntry) -> GlobalTask:
    return GlobalTask(
        id=row.task_key,
        task=row.task,
        category=row.category,
        status=row.status,
        due_date=row.due_date,
        linked_program_id=row.linked_school_id,
        linked_school_name=row.linked_school_name,
        weeks_before_deadline=row.weeks_before_deadline,
        is_optional=row.is_optional,
        triggers_checklist_sync=row.triggers_checklist_sync,
        sync_item_ids=row.sync_item_ids or [],
        created_at=_aware(row.created_at) or utcnow(),
        completed_at=_aware(row.completed_at),
    )


def _dashboard_task_from_row(row: DashboardTaskEntry) -> DashboardTask:
    return DashboardTask(
        id=row.task_key,
        task=row.task,
        category=row.category,
        status=row.status,
        link=row.link,
        created_at=_aware(row.created_at) or utcnow(),
        completed_at=_aware(row.completed_at),
    )


# =============================================================================
# STORE
# =============================================================================

class SqlTrackerStore(PersistencePort):
    """
    Persistence port over the user_saved_programs family of tables.

    Args:
        session_factory: sessionmaker to draw sessions from. Defaults to the
            application's SessionLocal.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    def _run(self, operation: str, fn):
        try:
            with session_scope(self.session_factory) as db:
                return fn(db)
        except SQLAlchemyError as e:
            logger.error(f"SQL store {operation} failed: {e}")
            raise PersistenceFailure(f"{operation} failed: {e}", operation=operation) from e

    @staticmethod
    def _find_program(db: Session, user_id: str, program_id: ProgramId) -> Optional[SavedProgram]:
        return db.execute(
            select(SavedProgram).where(
                SavedProgram.user_id == user_id,
                SavedProgram.school_id == program_id.school_id,
            )
        ).scalar_one_or_none()

    def _require_program(self, db: Session, user_id: str, program_id: ProgramId,
                         operation: str) -> SavedProgram:
        row = self._find_program(db, user_id, program_id)
        if row is None:
            raise PersistenceFailure(
                f"{operation} failed: no stored relationship for {program_id}",
                operation=operation,
            )
        return row

    # -- relationships -------------------------------------------------------

    def list_relationships_for_user(self, user_id: str) -> List[ProgramRelationship]:
        def fn(db: Session):
            rows = db.execute(
                select(SavedProgram)
                .where(SavedProgram.user_id == user_id)
                .options(
                    selectinload(SavedProgram.checklists),
                    selectinload(SavedProgram.lors),
                    selectinload(SavedProgram.documents),
                )
                .order_by(SavedProgram.id)
            ).scalars().all()
            return [_relationship_from_row(row) for row in rows]

        return self._run("list_relationships_for_user", fn)

    def upsert_relationship(self, user_id: str, relationship: ProgramRelationship,
                            replace_sub_records: bool = False) -> None:
        def fn(db: Session):
            row = self._find_program(db, user_id, relationship.program_id)
            if row is None:
                row = SavedProgram(user_id=user_id, school_id=relationship.program_id.school_id)
                db.add(row)
            row.is_target = relationship.is_target
            row.status = relationship.status.value
            row.notes = relationship.notes
            row.progress = relationship.progress
            row.saved_at = relationship.saved_at

            if replace_sub_records:
                # Flush the deletes first so reused item keys don't collide
                row.checklists.clear()
                row.lors.clear()
                row.documents.clear()
                db.flush()
                row.checklists.extend(_new_item_row(user_id, item) for item in relationship.checklist)
                row.lors.extend(_new_lor_row(user_id, lor) for lor in relationship.lors)
                row.documents.extend(_new_document_row(user_id, d) for d in relationship.documents)

        self._run("upsert_relationship", fn)

    def delete_relationship(self, user_id: str, program_id: ProgramId) -> None:
        def fn(db: Session):
            row = self._find_program(db, user_id, program_id)
            if row is not None:
                db.delete(row)

        self._run("delete_relationship", fn)

    # -- checklist -----------------------------------------------------------

    def upsert_checklist_items(self, user_id: str, program_id: ProgramId,
                               items: Iterable[ChecklistItem], progress: int) -> None:
        items = list(items)

        def fn(db: Session):
            row = self._require_program(db, user_id, program_id, "upsert_checklist_items")
            existing = {entry.item_key: entry for entry in row.checklists}
            for item in items:
                entry = existing.get(item.id)
                if entry is None:
                    row.checklists.append(_new_item_row(user_id, item))
                else:
                    _apply_item(entry, item)
            row.progress = progress

        self._run("upsert_checklist_items", fn)

    def delete_checklist_item(self, user_id: str, program_id: ProgramId,
                              item_id: str, progress: int) -> None:
        def fn(db: Session):
            row = self._require_program(db, user_id, program_id, "delete_checklist_item")
            for entry in list(row.checklists):
                if entry.item_key == item_id:
                    row.checklists.remove(entry)
            row.progress = progress

        self._run("delete_checklist_item", fn)

    # -- LORs and documents --------------------------------------------------

    def replace_lors(self, user_id: str, program_id: ProgramId,
                     lors: Iterable[LetterOfRecommendation]) -> None:
        lors = list(lors)

        def fn(db: Session):
            row = self._require_program(db, user_id, program_id, "replace_lors")
            row.lors.clear()
            db.flush()
            row.lors.extend(_new_lor_row(user_id, lor) for lor in lors)

        self._run("replace_lors", fn)

    def replace_documents(self, user_id: str, program_id: ProgramId,
                          documents: Iterable[ApplicationDocument]) -> None:
        documents = list(documents)

        def fn(db: Session):
            row = self._require_program(db, user_id, program_id, "replace_documents")
            row.documents.clear()
            db.flush()
            row.documents.extend(_new_document_row(user_id, d) for d in documents)

        self._run("replace_documents", fn)

    # -- global tasks --------------------------------------------------------

    def list_global_tasks(self, user_id: str) -> List[GlobalTask]:
        def fn(db: Session):
            rows = db.execute(
                select(GlobalTaskEntry)
                .where(GlobalTaskEntry.user_id == user_id)
                .order_by(GlobalTaskEntry.id)
            ).scalars().all()
            return [_global_task_from_row(row) for row in rows]

        return self._run("list_global_tasks", fn)

    def upsert_global_task(self, user_id: str, task: GlobalTask) -> None:
        def fn(db: Session):
            row = db.execute(
                select(GlobalTaskEntry).where(
                    GlobalTaskEntry.user_id == user_id,
                    GlobalTaskEntry.task_key == task.id,
                )
            ).scalar_one_or_none()
            if row is None:
                row = GlobalTaskEntry(user_id=user_id, task_key=task.id)
                db.add(row)
            row.task = task.task
            row.category = task.category
            row.status = task.status.value
            row.due_date = task.due_date
            row.linked_school_id = task.linked_program_id.school_id if task.linked_program_id else None
            row.linked_school_name = task.linked_school_name
            row.weeks_before_deadline = task.weeks_before_deadline
            row.is_optional = task.is_optional
            row.triggers_checklist_sync = task.triggers_checklist_sync
            row.sync_item_ids = list(task.sync_item_ids)
            row.created_at = task.created_at
            row.completed_at = task.completed_at

        self._run("upsert_global_task", fn)

    def delete_global_task(self, user_id: str, task_id: str) -> None:
        def fn(db: Session):
            row = db.execute(
                select(GlobalTaskEntry).where(
                    GlobalTaskEntry.user_id == user_id,
                    GlobalTaskEntry.task_key == task_id,
                )
            ).scalar_one_or_none()
            if row is not None:
                db.delete(row)

        self._run("delete_global_task", fn)

    # -- dashboard tasks -----------------------------------------------------

    def list_dashboard_tasks(self, user_id: str) -> List[DashboardTask]:
        def fn(db: Session):
            rows = db.execute(
                select(DashboardTaskEntry)
                .where(DashboardTaskEntry.user_id == user_id)
                .order_by(DashboardTaskEntry.id)
            ).scalars().all()
            return [_dashboard_task_from_row(row) for row in rows]

        return self._run("list_dashboard_tasks", fn)

    def upsert_dashboard_task(self, user_id: str, task: DashboardTask) -> None:
        def fn(db: Session):
            row = db.execute(
                select(DashboardTaskEntry).where(
                    DashboardTaskEntry.user_id == user_id,
                    DashboardTaskEntry.task_key == task.id,
                )
            ).scalar_one_or_none()
            if row is None:
                row = DashboardTaskEntry(user_id=user_id, task_key=task.id)
                db.add(row)
            row.task = task.task
            row.category = task.category
            row.status = task.status.value
            row.link = task.link
            row.created_at = task.created_at
            row.completed_at = task.completed_at

        self._run("upsert_dashboard_task", fn)

    def delete_dashboard_task(self, user_id: str, task_id: str) -> None:
        def fn(db: Session):
            row = db.execute(
                select(DashboardTaskEntry).where(
                    DashboardTaskEntry.user_id == user_id,
                    DashboardTaskEntry.task_key == task_id,
                )
            ).scalar_one_or_none()
            if row is not None:
                db.delete(row)

        self._run("delete_dashboard_task", fn)
