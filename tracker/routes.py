"""
Tracker API Routes

Exposes the program tracker via REST API. The user id travels in the path;
requests for one user share a single tracker from the registry.
The id ``anonymous`` selects the local key-value store.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from db import SessionLocal
from .config import ANONYMOUS_USER_ID, LOCAL_STORE_PATH
from .logic.constants import ApplicationStatus, HiddenReason
from .logic.contracts import ApplicationDocument, LetterOfRecommendation, ProgramId
from .logic.engine import ProgramTracker
from .logic.errors import InvariantViolation, NotFound, PersistenceFailure
from .logic.local_store import LocalTrackerStore
from .logic.ports import ProgramCatalog
from .logic.runner import TrackerRegistry, build_tracker, load_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracker", tags=["tracker"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache(maxsize=1)
def get_catalog() -> ProgramCatalog:
    return load_catalog()


def get_session_factory():
    return SessionLocal


@lru_cache(maxsize=1)
def get_local_store() -> LocalTrackerStore:
    return LocalTrackerStore(LOCAL_STORE_PATH)


@lru_cache(maxsize=1)
def get_registry() -> TrackerRegistry:
    return TrackerRegistry()


def get_tracker(
    user_id: str,
    catalog: ProgramCatalog = Depends(get_catalog),
    session_factory=Depends(get_session_factory),
    local_store: LocalTrackerStore = Depends(get_local_store),
    registry: TrackerRegistry = Depends(get_registry),
) -> ProgramTracker:
    def build() -> ProgramTracker:
        return build_tracker(
            catalog,
            user_id=None if user_id == ANONYMOUS_USER_ID else user_id,
            session_factory=session_factory,
            local_store=local_store,
        )

    try:
        return registry.get(user_id, build)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=f"Tracker storage unavailable: {str(e)}")


def _program_id(value: str) -> ProgramId:
    try:
        return ProgramId.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _run(fn):
    """Call into the tracker, mapping tracker errors onto HTTP responses."""
    try:
        return fn()
    except HTTPException:
        raise
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvariantViolation as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceFailure as e:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "message": f"Storage error: {str(e)}"},
        )
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class TargetDataUpdate(BaseModel):
    """Body for PATCH on a tracked program. Progress is never accepted."""
    status: Optional[ApplicationStatus] = None
    notes: Optional[str] = None
    lors: Optional[List[LetterOfRecommendation]] = None
    documents: Optional[List[ApplicationDocument]] = None


class ChecklistItemCreate(BaseModel):
    label: str = Field(..., min_length=1, max_length=255)


class ChecklistToggle(BaseModel):
    completed: Optional[bool] = Field(
        default=None,
        description="Explicit state; omitted flips the current state",
    )


class GlobalTaskCreate(BaseModel):
    """Either a default template name or a full template."""
    template_name: Optional[str] = None
    template: Optional[Dict[str, Any]] = None


class ChecklistSyncRequest(BaseModel):
    item_ids: List[str] = Field(..., min_length=1)
    completed: bool = True
    program_ids: Optional[List[str]] = Field(
        default=None,
        description="Restrict to these programs, e.g. to retry failed ones",
    )


# =============================================================================
# HEALTH CHECK
# =============================================================================

@router.get("/health", summary="Tracker health check")
def health_check():
    return {"status": "ok", "engine": "tracker"}


# =============================================================================
# PROGRAMS
# =============================================================================

@router.get("/{user_id}/programs", summary="List target and saved programs")
def list_programs(tracker: ProgramTracker = Depends(get_tracker)):
    return {
        "targets": [view.model_dump(mode="json") for view in tracker.target_programs()],
        "saved": [view.model_dump(mode="json") for view in tracker.saved_programs()],
        "has_targets": tracker.has_target_programs(),
    }


@router.get("/{user_id}/programs/{program_id}", summary="Get a target program")
def get_program(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    view = tracker.get_target_program(_program_id(program_id))
    if view is None:
        raise HTTPException(status_code=404, detail=f"{program_id} is not a target program")
    return view.model_dump(mode="json")


@router.get("/{user_id}/programs/{program_id}/tasks", summary="Deadline tasks for a target")
def program_tasks(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    tasks = _run(lambda: tracker.tasks_for_program(pid))
    if isinstance(tasks, JSONResponse):
        return tasks
    return [t.model_dump(mode="json") for t in tasks]


@router.post("/{user_id}/programs/{program_id}/save", summary="Save a program")
def save_program(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.save_program(pid))


@router.post("/{user_id}/programs/{program_id}/target", summary="Convert to target")
def convert_to_target(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.convert_to_target(pid))


@router.post("/{user_id}/programs/{program_id}/revert", summary="Revert target to saved")
def revert_to_saved(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.revert_to_saved(pid))


@router.delete("/{user_id}/programs/{program_id}", summary="Remove a program")
def remove_program(program_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    result = _run(lambda: tracker.remove_program(pid))
    if isinstance(result, JSONResponse):
        return result
    return {"status": "ok", "message": f"Removed {pid}"}


@router.patch("/{user_id}/programs/{program_id}", summary="Update status, notes, LORs or documents")
def update_program(
    program_id: str,
    payload: TargetDataUpdate = Body(...),
    tracker: ProgramTracker = Depends(get_tracker),
):
    pid = _program_id(program_id)
    return _run(lambda: tracker.update_target_details(
        pid, payload.status, payload.notes, payload.lors, payload.documents))


# =============================================================================
# CHECKLIST
# =============================================================================

@router.post("/{user_id}/programs/{program_id}/checklist", summary="Add a custom checklist item")
def add_checklist_item(
    program_id: str,
    payload: ChecklistItemCreate,
    tracker: ProgramTracker = Depends(get_tracker),
):
    pid = _program_id(program_id)
    return _run(lambda: tracker.add_checklist_item(pid, payload.label))


@router.post("/{user_id}/programs/{program_id}/checklist/{item_id}/toggle", summary="Toggle an item")
def toggle_checklist_item(
    program_id: str,
    item_id: str,
    payload: Optional[ChecklistToggle] = Body(default=None),
    tracker: ProgramTracker = Depends(get_tracker),
):
    pid = _program_id(program_id)
    completed = payload.completed if payload else None
    return _run(lambda: tracker.toggle_checklist_item(pid, item_id, completed))


@router.post("/{user_id}/programs/{program_id}/checklist/{item_id}/hide", summary="Hide an item")
def hide_checklist_item(program_id: str, item_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.hide_checklist_item(pid, item_id, HiddenReason.USER_HIDDEN))


@router.post("/{user_id}/programs/{program_id}/checklist/{item_id}/reveal", summary="Reveal an item")
def reveal_checklist_item(program_id: str, item_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.reveal_checklist_item(pid, item_id))


@router.delete("/{user_id}/programs/{program_id}/checklist/{item_id}", summary="Remove a custom item")
def remove_checklist_item(program_id: str, item_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    pid = _program_id(program_id)
    return _run(lambda: tracker.remove_checklist_item(pid, item_id))


# =============================================================================
# GLOBAL TASKS
# =============================================================================

@router.get("/{user_id}/global-tasks", summary="List global tasks")
def list_global_tasks(tracker: ProgramTracker = Depends(get_tracker)):
    return [task.model_dump(mode="json") for task in tracker.list_global_tasks()]


@router.post("/{user_id}/global-tasks", summary="Add a global task")
def add_global_task(payload: GlobalTaskCreate, tracker: ProgramTracker = Depends(get_tracker)):
    template = payload.template if payload.template is not None else payload.template_name
    if not template:
        raise HTTPException(status_code=400, detail="template_name or template is required")
    task = _run(lambda: tracker.add_global_task(template))
    if isinstance(task, JSONResponse):
        return task
    return task.model_dump(mode="json")


@router.post("/{user_id}/global-tasks/{task_id}/complete", summary="Complete a global task")
def complete_global_task(task_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    """
    Returns the completed task. When it triggers checklist sync the client
    offers ``sync_item_ids`` to the user and calls /checklist-sync on consent.
    """
    task = _run(lambda: tracker.complete_global_task(task_id))
    if isinstance(task, JSONResponse):
        return task
    return task.model_dump(mode="json")


@router.delete("/{user_id}/global-tasks/{task_id}", summary="Delete a global task")
def delete_global_task(task_id: str, tracker: ProgramTracker = Depends(get_tracker)):
    result = _run(lambda: tracker.delete_global_task(task_id))
    if isinstance(result, JSONResponse):
        return result
    return {"status": "ok", "message": f"Deleted {task_id}"}


@router.post("/{user_id}/checklist-sync", summary="Mark checklist items across all targets")
def sync_checklist_items(payload: ChecklistSyncRequest, tracker: ProgramTracker = Depends(get_tracker)):
    program_ids = None
    if payload.program_ids is not None:
        program_ids = [_program_id(pid) for pid in payload.program_ids]
    result = _run(lambda: tracker.sync_checklist_items_across_programs(
        payload.item_ids, payload.completed, program_ids))
    if isinstance(result, JSONResponse):
        return result
    data = result.model_dump(mode="json")
    data["ok"] = result.ok
    return data
