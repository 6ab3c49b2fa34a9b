"""
Global Task Coordinator

Global tasks (GRE, CCRN) are tracked once per user. Their due date comes from
the earliest deadline among the target programs that require the task's
category. Completing one can be followed by a fan-out that marks the linked
checklist items complete on every target program.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Union

from .constants import TASK_CHECKLIST_SYNC_MAP, TaskStatus
from .contracts import (
    DeadlineSource,
    GlobalTask,
    ProgramId,
    SyncResult,
    TaskTemplate,
    utcnow,
)
from .errors import InvariantViolation, NotFound, PersistenceFailure
from .task_planner import calculate_due_date, resolve_template, slugify

if TYPE_CHECKING:
    from .checklist import ChecklistEngine
    from .relationships import RelationshipStore

logger = logging.getLogger(__name__)


class GlobalTaskCoordinator:
    def __init__(self, store: "RelationshipStore", checklist: "ChecklistEngine"):
        self.store = store
        self.checklist = checklist
        self._tasks: Dict[str, GlobalTask] = {}

    def load(self) -> None:
        tasks = self.store.port.list_global_tasks(self.store.user_id)
        self._tasks = {task.id: task for task in tasks}

    def all(self) -> List[GlobalTask]:
        return list(self._tasks.values())

    def get(self, task_id: str) -> GlobalTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound(f"Global task {task_id} not found")
        return task

    def _put(self, operation: str, task: GlobalTask) -> GlobalTask:
        store = self.store
        store.write(operation, lambda: store.port.upsert_global_task(store.user_id, task))
        self._tasks[task.id] = task
        return task

    # =========================================================================
    # DEADLINES
    # =========================================================================

    def earliest_deadline_for_category(self, category: str) -> Optional[DeadlineSource]:
        """
        Earliest application deadline among target programs requiring
        ``category``. Ties resolve to the lowest program id.
        """
        candidates = []
        for rel in self.store.targets():
            program = self.store.catalog.get_program(rel.program_id)
            if program is None or program.application_deadline is None:
                continue
            if not program.requires(category):
                continue
            candidates.append(program)

        if not candidates:
            return None
        earliest = min(candidates, key=lambda p: (p.application_deadline, p.id.school_id))
        return DeadlineSource(
            deadline=earliest.application_deadline,
            program_id=earliest.id,
            school_name=earliest.school_name,
        )

    def _schedule(self, task: GlobalTask) -> dict:
        source = self.earliest_deadline_for_category(task.category)
        if source is None:
            return {"due_date": None, "linked_program_id": None, "linked_school_name": None}
        return {
            "due_date": calculate_due_date(source.deadline, task.weeks_before_deadline),
            "linked_program_id": source.program_id,
            "linked_school_name": source.school_name,
        }

    # =========================================================================
    # TASK LIFECYCLE
    # =========================================================================

    def create_task(self, template: Union[TaskTemplate, dict, str]) -> GlobalTask:
        """
        Create a global task from a template or a default template name.

        The due date is fixed at creation; it only moves again through
        ``refresh_deadlines``.
        """
        template = resolve_template(template)
        sync_item_ids = []
        if template.triggers_checklist_sync:
            sync_item_ids = list(TASK_CHECKLIST_SYNC_MAP.get(template.task, []))

        task = GlobalTask(
            id=f"global_{slugify(template.task)}_{uuid.uuid4().hex[:8]}",
            task=template.task,
            category=template.category,
            weeks_before_deadline=template.weeks_before_deadline,
            is_optional=template.is_optional,
            triggers_checklist_sync=template.triggers_checklist_sync,
            sync_item_ids=sync_item_ids,
        )
        task = task.model_copy(update=self._schedule(task))
        self._put("add_global_task", task)

        if task.due_date is None:
            logger.info(f"Added global task {task.id} with no due date (no target requires {task.category})")
        else:
            logger.info(f"Added global task {task.id} due {task.due_date} via {task.linked_program_id}")
        return task

    def complete(self, task_id: str) -> GlobalTask:
        """Mark complete and return the task. Completing twice is a no-op."""
        task = self.get(task_id)
        if task.status == TaskStatus.COMPLETED:
            return task
        done = task.model_copy(update={"status": TaskStatus.COMPLETED, "completed_at": utcnow()})
        self._put("complete_global_task", done)
        logger.info(f"Completed global task {task_id}")
        return done

    def update_status(self, task_id: str, status) -> GlobalTask:
        status = TaskStatus(status)
        task = self.get(task_id)
        if status == TaskStatus.COMPLETED:
            return self.complete(task_id)
        if task.status == TaskStatus.COMPLETED:
            raise InvariantViolation(f"Global task {task_id} is completed and cannot be reopened")
        return task

    def delete(self, task_id: str) -> None:
        self.get(task_id)
        store = self.store
        store.write("delete_global_task", lambda: store.port.delete_global_task(store.user_id, task_id))
        del self._tasks[task_id]
        logger.info(f"Deleted global task {task_id}")

    def refresh_deadlines(self) -> List[GlobalTask]:
        """
        Recompute due dates of open tasks against the current targets.

        Returns the tasks whose schedule changed. Completed tasks keep the
        date they were completed against.
        """
        updated = []
        for task in list(self._tasks.values()):
            if task.status == TaskStatus.COMPLETED:
                continue
            schedule = self._schedule(task)
            if all(getattr(task, field) == value for field, value in schedule.items()):
                continue
            updated.append(self._put("refresh_global_task", task.model_copy(update=schedule)))
        if updated:
            logger.info(f"Rescheduled {len(updated)} global task(s)")
        return updated

    # =========================================================================
    # CHECKLIST FAN-OUT
    # =========================================================================

    def sync_across_programs(self, item_ids: Iterable[str], completed: bool = True,
                             program_ids: Optional[Iterable] = None) -> SyncResult:
        """
        Set ``item_ids`` to ``completed`` on every target relationship.

        Each relationship is written as its own unit; one failing does not
        stop the rest. Relationships that failed keep their previous state and
        are listed in ``failed`` so the call can be retried with
        ``program_ids`` restricted to them. Targets without any of the items
        count as succeeded.
        """
        item_ids = list(item_ids)
        only = None
        if program_ids is not None:
            only = {ProgramId.parse(pid) for pid in program_ids}

        result = SyncResult(item_ids=item_ids, completed=completed)
        for rel in self.store.targets():
            if only is not None and rel.program_id not in only:
                continue
            try:
                self.checklist.apply_to_relationship(rel, item_ids, completed)
            except PersistenceFailure as e:
                logger.error(f"Checklist sync failed for {rel.program_id}: {e}")
                result.failed.append(rel.program_id)
                continue
            result.succeeded.append(rel.program_id)

        if result.failed:
            logger.warning(
                f"Checklist sync of {item_ids} partially failed: "
                f"{len(result.succeeded)} ok, failed={[str(p) for p in result.failed]}"
            )
        else:
            logger.info(f"Synced checklist items {item_ids} across {len(result.succeeded)} target(s)")
        return result
