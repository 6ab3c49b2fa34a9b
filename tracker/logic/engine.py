"""
Program Tracker

Facade the UI and HTTP layer talk to. Composes the relationship store, the
checklist engine and the global task coordinator over one persistence port
and one catalog.

Every public operation runs under a single re-entrant lock, so a session's
reads never observe a half-applied mutation. Benign rule violations
(capacity, invariants) come back as ActionResult; NotFound and
PersistenceFailure propagate.
"""

import logging
import threading
from functools import wraps
from typing import Iterable, List, Optional

from ..config import WRITE_RETRIES
from .checklist import ChecklistEngine
from .constants import HiddenReason
from .contracts import (
    ActionResult,
    ApplicationDocument,
    ChecklistItem,
    DashboardTask,
    DeadlineSource,
    GlobalTask,
    LetterOfRecommendation,
    ProgramRelationship,
    ProgramTask,
    SavedProgramView,
    SyncResult,
    TargetProgramView,
)
from .errors import CapacityExceeded, InvariantViolation, NotFound
from .global_tasks import GlobalTaskCoordinator
from .ports import PersistencePort, ProgramCatalog
from .relationships import RelationshipStore
from .task_planner import DashboardTaskBoard, generate_program_tasks

logger = logging.getLogger(__name__)


def synchronized(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class ProgramTracker:
    """
    One user's saved programs, target checklists and tasks.

    Instances are not shared across users. Call ``load`` once before use.
    """

    def __init__(self, user_id: str, port: PersistencePort, catalog: ProgramCatalog,
                 write_retries: int = WRITE_RETRIES):
        self.user_id = user_id
        self.catalog = catalog
        self._lock = threading.RLock()
        self.relationships = RelationshipStore(user_id, port, catalog, write_retries)
        self.checklist = ChecklistEngine(self.relationships)
        self.global_tasks = GlobalTaskCoordinator(self.relationships, self.checklist)
        self.dashboard = DashboardTaskBoard(self.relationships)

    @synchronized
    def load(self) -> "ProgramTracker":
        self.relationships.load()
        self.global_tasks.load()
        self.dashboard.load()
        return self

    def _benign(self, operation: str, fn) -> ActionResult:
        try:
            rel = fn()
        except (CapacityExceeded, InvariantViolation) as e:
            logger.warning(f"{operation} refused for {self.user_id}: {e}")
            return ActionResult(ok=False, code=e.code, message=str(e))
        progress = rel.progress if isinstance(rel, ProgramRelationship) else None
        return ActionResult(ok=True, progress=progress)

    # =========================================================================
    # RELATIONSHIPS
    # =========================================================================

    @synchronized
    def save_program(self, program_id) -> ActionResult:
        return self._benign("save_program", lambda: self.relationships.save(program_id))

    @synchronized
    def convert_to_target(self, program_id) -> ActionResult:
        """
        Unknown catalog ids are reported in the result rather than raised,
        and leave every relationship untouched.
        """
        try:
            return self._benign("convert_to_target",
                                lambda: self.relationships.convert_to_target(program_id))
        except NotFound as e:
            logger.warning(f"convert_to_target skipped for {self.user_id}: {e}")
            return ActionResult(ok=False, code=e.code, message=str(e))

    @synchronized
    def revert_to_saved(self, program_id) -> ActionResult:
        return self._benign("revert_to_saved", lambda: self.relationships.revert_to_saved(program_id))

    @synchronized
    def remove_program(self, program_id, was_target: Optional[bool] = None) -> None:
        self.relationships.remove(program_id, was_target)

    @synchronized
    def update_target_data(self, program_id, status=None, notes: Optional[str] = None) -> ActionResult:
        return self._benign("update_target_data",
                            lambda: self.relationships.update_target_data(program_id, status, notes))

    @synchronized
    def update_lors(self, program_id, lors: Iterable[LetterOfRecommendation]) -> ActionResult:
        return self._benign("update_lors", lambda: self.relationships.update_lors(program_id, lors))

    @synchronized
    def update_documents(self, program_id, documents: Iterable[ApplicationDocument]) -> ActionResult:
        return self._benign("update_documents",
                            lambda: self.relationships.update_documents(program_id, documents))

    @synchronized
    def update_target_details(self, program_id, status=None, notes: Optional[str] = None,
                              lors: Optional[Iterable[LetterOfRecommendation]] = None,
                              documents: Optional[Iterable[ApplicationDocument]] = None,
                              ) -> ActionResult:
        """All-or-nothing update of status, notes, LORs and documents."""
        return self._benign("update_target_details", lambda: self.relationships.update_target_details(
            program_id, status, notes, lors, documents))

    # =========================================================================
    # CHECKLIST
    # =========================================================================

    @synchronized
    def toggle_checklist_item(self, program_id, item_id: str,
                              completed: Optional[bool] = None) -> ActionResult:
        return self._benign("toggle_checklist_item",
                            lambda: self.checklist.toggle(program_id, item_id, completed))

    @synchronized
    def add_checklist_item(self, program_id, label: str) -> ActionResult:
        def add():
            self.checklist.add_custom(program_id, label)
            return self.relationships.require(program_id)
        return self._benign("add_checklist_item", add)

    @synchronized
    def remove_checklist_item(self, program_id, item_id: str) -> ActionResult:
        return self._benign("remove_checklist_item",
                            lambda: self.checklist.remove_custom(program_id, item_id))

    @synchronized
    def hide_checklist_item(self, program_id, item_id: str,
                            reason: HiddenReason = HiddenReason.USER_HIDDEN) -> ActionResult:
        return self._benign("hide_checklist_item",
                            lambda: self.checklist.hide(program_id, item_id, reason))

    @synchronized
    def reveal_checklist_item(self, program_id, item_id: str) -> ActionResult:
        return self._benign("reveal_checklist_item",
                            lambda: self.checklist.reveal(program_id, item_id))

    @synchronized
    def get_hidden_items(self, program_id) -> List[ChecklistItem]:
        return self.checklist.hidden_items(program_id)

    # =========================================================================
    # GLOBAL TASKS
    # =========================================================================

    @synchronized
    def get_earliest_deadline_for_category(self, category: str) -> Optional[DeadlineSource]:
        return self.global_tasks.earliest_deadline_for_category(category)

    @synchronized
    def list_global_tasks(self) -> List[GlobalTask]:
        return self.global_tasks.all()

    @synchronized
    def add_global_task(self, template) -> GlobalTask:
        return self.global_tasks.create_task(template)

    @synchronized
    def complete_global_task(self, task_id: str) -> GlobalTask:
        return self.global_tasks.complete(task_id)

    @synchronized
    def update_global_task_status(self, task_id: str, status) -> ActionResult:
        try:
            self.global_tasks.update_status(task_id, status)
        except InvariantViolation as e:
            logger.warning(f"update_global_task_status refused for {self.user_id}: {e}")
            return ActionResult(ok=False, code=e.code, message=str(e))
        return ActionResult(ok=True)

    @synchronized
    def delete_global_task(self, task_id: str) -> None:
        self.global_tasks.delete(task_id)

    @synchronized
    def refresh_global_task_deadlines(self) -> List[GlobalTask]:
        return self.global_tasks.refresh_deadlines()

    @synchronized
    def sync_checklist_items_across_programs(self, item_ids: Iterable[str], completed: bool = True,
                                             program_ids: Optional[Iterable] = None) -> SyncResult:
        return self.global_tasks.sync_across_programs(item_ids, completed, program_ids)

    # =========================================================================
    # DASHBOARD TASKS
    # =========================================================================

    @synchronized
    def list_dashboard_tasks(self) -> List[DashboardTask]:
        return self.dashboard.all()

    @synchronized
    def suggested_dashboard_tasks(self) -> List[DashboardTask]:
        return self.dashboard.suggestions()

    @synchronized
    def add_dashboard_task(self, task: str, category: str = "general",
                           link: Optional[str] = None) -> DashboardTask:
        return self.dashboard.add(task, category, link)

    @synchronized
    def complete_dashboard_task(self, task_id: str) -> DashboardTask:
        return self.dashboard.complete(task_id)

    @synchronized
    def delete_dashboard_task(self, task_id: str) -> None:
        self.dashboard.delete(task_id)

    # =========================================================================
    # VIEWS
    # =========================================================================

    def _target_view(self, rel: ProgramRelationship) -> Optional[TargetProgramView]:
        program = self.catalog.get_program(rel.program_id)
        if program is None:
            return None
        checklist = sorted(rel.checklist, key=lambda item: item.sort_order)
        return TargetProgramView(
            program=program,
            status=rel.status,
            notes=rel.notes,
            progress=rel.progress,
            saved_at=rel.saved_at,
            checklist=checklist,
            visible_checklist=[item for item in checklist if not item.hidden],
            hidden_checklist=[item for item in checklist if item.hidden],
            lors=rel.lors,
            documents=rel.documents,
        )

    @synchronized
    def target_programs(self) -> List[TargetProgramView]:
        """Targets whose program is still in the catalog, most recently saved first."""
        views = [self._target_view(rel) for rel in self.relationships.targets()]
        views = [view for view in views if view is not None]
        return sorted(views, key=lambda v: v.saved_at, reverse=True)

    @synchronized
    def saved_programs(self) -> List[SavedProgramView]:
        views = []
        for rel in self.relationships.saved():
            program = self.catalog.get_program(rel.program_id)
            if program is None:
                continue
            views.append(SavedProgramView(program=program, notes=rel.notes, saved_at=rel.saved_at))
        return sorted(views, key=lambda v: v.saved_at, reverse=True)

    @synchronized
    def get_target_program(self, program_id) -> Optional[TargetProgramView]:
        rel = self.relationships.get(program_id)
        if rel is None or not rel.is_target:
            return None
        return self._target_view(rel)

    @synchronized
    def has_target_programs(self) -> bool:
        return bool(self.relationships.targets())

    @synchronized
    def tasks_for_program(self, program_id) -> List[ProgramTask]:
        self.relationships.require_target(program_id)
        program = self.relationships.require_program(program_id)
        return generate_program_tasks(program)
