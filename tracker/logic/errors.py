"""
Tracker Errors

NotFound and PersistenceFailure propagate to callers. CapacityExceeded and
InvariantViolation are benign: the tracker facade turns them into
ActionResult messages.
"""

from typing import Iterable, List, Optional


class TrackerError(Exception):
    code = "tracker_error"


class NotFound(TrackerError):
    code = "not_found"


class CapacityExceeded(TrackerError):
    code = "capacity_exceeded"


class InvariantViolation(TrackerError):
    code = "invariant_violation"


class PersistenceFailure(TrackerError):
    """A port write was rejected. ``failed_program_ids`` is set for fan-outs."""
    code = "persistence_failure"

    def __init__(self, message: str, operation: Optional[str] = None,
                 failed_program_ids: Optional[Iterable] = None):
        super().__init__(message)
        self.operation = operation
        self.failed_program_ids: List = list(failed_program_ids or [])
