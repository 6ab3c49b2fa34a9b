"""
Task Planner

Deadline arithmetic, task template lookup, per-program deadline tasks and
the dashboard task list shown to users who have no target programs yet.
"""

import logging
import re
import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from .constants import (
    DASHBOARD_SUGGESTED_TASKS,
    DEFAULT_TASK_TEMPLATES,
    GLOBAL_TASK_CATEGORIES,
    TaskStatus,
)
from .contracts import DashboardTask, Program, ProgramTask, TaskTemplate, utcnow
from .errors import NotFound

if TYPE_CHECKING:
    from .relationships import RelationshipStore

logger = logging.getLogger(__name__)


def calculate_due_date(deadline: date, weeks_before_deadline: int) -> date:
    return deadline - timedelta(days=7 * (weeks_before_deadline or 0))


def default_templates() -> List[TaskTemplate]:
    return [
        TaskTemplate(
            task=task,
            weeks_before_deadline=weeks,
            category=category,
            is_optional=optional,
            is_global=is_global or category in GLOBAL_TASK_CATEGORIES,
            triggers_checklist_sync=triggers_sync,
        )
        for task, weeks, category, optional, is_global, triggers_sync in DEFAULT_TASK_TEMPLATES
    ]


def resolve_template(template: Union[TaskTemplate, dict, str]) -> TaskTemplate:
    """Accept a template, its dict form, or the name of a default template."""
    if isinstance(template, TaskTemplate):
        return template
    if isinstance(template, dict):
        return TaskTemplate(**template)
    for candidate in default_templates():
        if candidate.task == template:
            return candidate
    raise NotFound(f"No task template named {template!r}")


def slugify(text: str) -> str:
    return re.sub(r"\s+", "_", text.strip()).lower()


def generate_program_tasks(program: Program) -> List[ProgramTask]:
    """
    Deadline-driven tasks for one target program.

    Global categories are tracked once per user and are left out here.
    Programs without a deadline get no tasks.
    """
    if program.application_deadline is None:
        return []

    tasks = []
    for index, template in enumerate(default_templates()):
        if template.is_global:
            continue
        tasks.append(ProgramTask(
            id=f"task_{program.id.key}_{index}",
            task=template.task,
            category=template.category,
            program_id=program.id,
            school_name=program.school_name,
            due_date=calculate_due_date(program.application_deadline, template.weeks_before_deadline),
            is_optional=template.is_optional,
        ))
    tasks.sort(key=lambda t: t.due_date)
    return tasks


# =============================================================================
# DASHBOARD TASKS
# =============================================================================

def suggested_dashboard_tasks() -> List[DashboardTask]:
    return [
        DashboardTask(id=task_id, task=task, category=category, link=link or None)
        for task_id, task, category, link in DASHBOARD_SUGGESTED_TASKS
    ]


class DashboardTaskBoard:
    """Undated personal tasks; persisted through the same port as the rest."""

    def __init__(self, store: "RelationshipStore"):
        self.store = store
        self._tasks: Dict[str, DashboardTask] = {}

    def load(self) -> None:
        tasks = self.store.port.list_dashboard_tasks(self.store.user_id)
        self._tasks = {task.id: task for task in tasks}

    def all(self) -> List[DashboardTask]:
        return list(self._tasks.values())

    def suggestions(self) -> List[DashboardTask]:
        """Suggested tasks the user has not added yet, matched by name."""
        added = {task.task.lower() for task in self._tasks.values()}
        return [s for s in suggested_dashboard_tasks() if s.task.lower() not in added]

    def _put(self, operation: str, task: DashboardTask) -> DashboardTask:
        store = self.store
        store.write(operation, lambda: store.port.upsert_dashboard_task(store.user_id, task))
        self._tasks[task.id] = task
        return task

    def add(self, task: str, category: str = "general", link: Optional[str] = None) -> DashboardTask:
        new_task = DashboardTask(
            id=f"dash_{slugify(task)}_{uuid.uuid4().hex[:8]}",
            task=task,
            category=category,
            link=link,
        )
        self._put("add_dashboard_task", new_task)
        logger.info(f"Added dashboard task {new_task.id}")
        return new_task

    def complete(self, task_id: str) -> DashboardTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound(f"Dashboard task {task_id} not found")
        if task.status == TaskStatus.COMPLETED:
            return task
        done = task.model_copy(update={"status": TaskStatus.COMPLETED, "completed_at": utcnow()})
        return self._put("complete_dashboard_task", done)

    def delete(self, task_id: str) -> None:
        if task_id not in self._tasks:
            raise NotFound(f"Dashboard task {task_id} not found")
        store = self.store
        store.write("delete_dashboard_task", lambda: store.port.delete_dashboard_task(store.user_id, task_id))
        del self._tasks[task_id]
