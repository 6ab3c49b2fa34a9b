"""
Tracker Constants

Status enums, the default application checklist, task templates and the
mappings that tie global exam tasks to checklist items.
This is configuration data: program records come from the catalog.
"""

from enum import Enum
from typing import Dict, List, Tuple


# =============================================================================
# STATUSES
# =============================================================================

class ApplicationStatus(str, Enum):
    """Where the applicant stands with a tracked program."""
    RESEARCHING = "researching"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    INTERVIEW_INVITE = "interview_invite"
    INTERVIEW_COMPLETE = "interview_complete"
    WAITLISTED = "waitlisted"
    DENIED = "denied"
    ACCEPTED = "accepted"


class HiddenReason(str, Enum):
    SCHOOL_NOT_REQUIRED = "school_not_required"
    USER_HIDDEN = "user_hidden"


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    COMPLETED = "completed"


class LorStatus(str, Enum):
    NOT_REQUESTED = "not_requested"
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    SUBMITTED = "submitted"
    RECEIVED = "received"
    DECLINED = "declined"


# =============================================================================
# CHECKLIST
# =============================================================================

MAX_CUSTOM_CHECKLIST_ITEMS = 3

CUSTOM_ITEM_PREFIX = "custom_"

# (id, label, requirement category). Items with a category are pre-hidden
# when the program does not require it.
DEFAULT_CHECKLIST_ITEMS: List[Tuple[str, str, str]] = [
    ("c1", "Verify all program requirements + due date", ""),
    ("c2", "Check for Open House or program event", ""),
    ("c3", "Request official Transcripts", ""),
    ("c4", "Complete Prerequisites", ""),
    ("c5", "Complete the GRE", "gre"),
    ("c6", "Send GRE Scores", "gre"),
    ("c7", "Complete CCRN", "ccrn"),
    ("c8", "Complete Resume", ""),
    ("c9", "Complete Personal Statement", ""),
    ("c10", "Complete Letters of Recommendation", ""),
    ("c11", "Complete Supplemental Forms", ""),
    ("c12", "Submit Application", ""),
]

# Checklist item id -> task category it tracks
CHECKLIST_TASK_MAPPING: Dict[str, str] = {
    item_id: category
    for item_id, _, category in DEFAULT_CHECKLIST_ITEMS
    if category
}


# =============================================================================
# TASKS
# =============================================================================

# One-time exams: tracked once per user, due before the earliest
# deadline among the target programs that require them
GLOBAL_TASK_CATEGORIES: Tuple[str, ...] = ("gre", "ccrn", "ccrn-prep")

# Category -> catalog requirement flag on Program
CATEGORY_REQUIREMENT_FLAGS: Dict[str, str] = {
    "gre": "gre_required",
    "ccrn": "ccrn_required",
    "ccrn-prep": "ccrn_required",
}

# (task, weeks before deadline, category, optional, global, triggers sync)
DEFAULT_TASK_TEMPLATES: List[Tuple[str, int, str, bool, bool, bool]] = [
    ("Submit Application", 0, "application", False, False, False),
    ("Complete application portal", 1, "application", False, False, False),
    ("Pay application fee", 1, "application", False, False, False),
    ("Follow up on LORs", 3, "lor", False, False, False),
    ("Essay Final Draft", 8, "personal-statement", False, False, False),
    ("Request letters of recommendation", 10, "lor", False, False, False),
    ("Complete essay second draft", 10, "personal-statement", False, False, False),
    ("Request official transcripts", 10, "transcripts", False, False, False),
    ("Complete essay first draft", 12, "personal-statement", False, False, False),
    ("(Optional) Second certification", 12, "ccrn", True, False, False),
    ("Complete resume", 16, "resume", False, False, False),
    ("First certification (ie. CCRN, CMC)", 16, "ccrn", False, False, True),
    ("GRE Exam", 20, "gre", False, True, True),
    ("Schedule the GRE", 23, "gre", False, True, False),
    ("Take GRE Practice Exam 2", 24, "gre", False, True, False),
    ("Take GRE Practice Exam 1", 32, "gre", False, True, False),
    ("(Optional) Prerequisite #1", 36, "prerequisites", True, False, False),
    ("(Optional) Prerequisite #2", 24, "prerequisites", True, False, False),
    ("Schedule CCRN Exam", 20, "ccrn-prep", False, True, False),
    ("Take CCRN Practice Exam 1", 28, "ccrn-prep", False, True, False),
    ("Take CCRN Practice Exam 2", 22, "ccrn-prep", False, True, False),
    ("CCRN Exam", 18, "ccrn", False, True, True),
]

# Task name -> checklist items offered for completion across all targets
TASK_CHECKLIST_SYNC_MAP: Dict[str, List[str]] = {
    "GRE Exam": ["c5", "c6"],
    "First certification (ie. CCRN, CMC)": ["c7"],
    "CCRN Exam": ["c7"],
}

# Suggestions for users with no target programs: (id, task, category, link)
DASHBOARD_SUGGESTED_TASKS: List[Tuple[str, str, str, str]] = [
    ("sug_gre_1", "Schedule GRE", "gre", ""),
    ("sug_gre_2", "Take GRE Practice Exam 1", "gre", ""),
    ("sug_gre_3", "Take GRE Practice Exam 2", "gre", ""),
    ("sug_gre_4", "Take GRE Exam", "gre", ""),
    ("sug_ccrn_1", "Schedule CCRN Exam", "ccrn-prep", ""),
    ("sug_ccrn_2", "Take CCRN Practice Exam 1", "ccrn-prep", ""),
    ("sug_ccrn_3", "Take CCRN Practice Exam 2", "ccrn-prep", ""),
    ("sug_ccrn_4", "Take CCRN Exam", "ccrn", ""),
    ("sug_shadow_1", "Schedule Shadow Day", "shadowing", ""),
    ("sug_profile_1", "Fill out My Stats page", "profile", "/my-stats"),
    ("sug_profile_2", "Calculate your GPAs", "profile", "/my-stats"),
    ("sug_resume", "Start your Resume", "resume", ""),
    ("sug_ps", "Draft Personal Statement", "personal-statement", ""),
]
