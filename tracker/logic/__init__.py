"""
Tracker Logic Module

Saved/target program relationships, target checklists with progress, and
global exam tasks whose completion can fan out across all target programs.
"""

from .contracts import (
    ProgramId,
    Program,
    ChecklistItem,
    ProgramRelationship,
    TaskTemplate,
    GlobalTask,
    DashboardTask,
    DeadlineSource,
    TargetProgramView,
    SavedProgramView,
    ActionResult,
    SyncResult,
)
from .constants import ApplicationStatus, HiddenReason, TaskStatus
from .errors import (
    TrackerError,
    NotFound,
    CapacityExceeded,
    InvariantViolation,
    PersistenceFailure,
)
from .ports import PersistencePort, ProgramCatalog, InMemoryCatalog
from .progress import calculate_progress
from .engine import ProgramTracker
from .runner import TrackerRegistry, build_tracker, load_catalog

__all__ = [
    # Main facade
    "ProgramTracker",
    "build_tracker",
    "TrackerRegistry",
    "load_catalog",
    "calculate_progress",

    # Ports
    "PersistencePort",
    "ProgramCatalog",
    "InMemoryCatalog",

    # Contracts
    "ProgramId",
    "Program",
    "ChecklistItem",
    "ProgramRelationship",
    "TaskTemplate",
    "GlobalTask",
    "DashboardTask",
    "DeadlineSource",
    "TargetProgramView",
    "SavedProgramView",
    "ActionResult",
    "SyncResult",

    # Enums
    "ApplicationStatus",
    "HiddenReason",
    "TaskStatus",

    # Errors
    "TrackerError",
    "NotFound",
    "CapacityExceeded",
    "InvariantViolation",
    "PersistenceFailure",
]
