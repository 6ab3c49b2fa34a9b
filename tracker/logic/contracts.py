"""
Data Contracts for the Program Tracker

Pydantic models for catalog programs, the user's program relationships and
their checklists, global/dashboard tasks, and the views and results handed
back to callers. These contracts are the boundary of the tracker engine.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Any, ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, BeforeValidator, model_serializer

from .constants import (
    ApplicationStatus,
    CATEGORY_REQUIREMENT_FLAGS,
    HiddenReason,
    LorStatus,
    TaskStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# IDENTIFIERS
# =============================================================================

class ProgramId(BaseModel):
    """
    Typed program identifier.

    Wraps the catalog's integer school id. The legacy ``school_<id>`` string
    form is only understood by ``parse`` and produced by ``key``.
    """
    school_id: int

    model_config = ConfigDict(frozen=True)

    PREFIX: ClassVar[str] = "school_"

    @classmethod
    def parse(cls, value: Any) -> "ProgramId":
        if isinstance(value, ProgramId):
            return value
        if isinstance(value, dict):
            return cls(**value)
        if isinstance(value, bool):
            raise ValueError(f"Invalid program id: {value!r}")
        if isinstance(value, int):
            return cls(school_id=value)
        if isinstance(value, str):
            text = value.strip()
            if text.startswith(cls.PREFIX):
                text = text[len(cls.PREFIX):]
            if text.isdigit():
                return cls(school_id=int(text))
        raise ValueError(f"Invalid program id: {value!r}")

    @property
    def key(self) -> str:
        return f"{self.PREFIX}{self.school_id}"

    @model_serializer
    def _serialize(self) -> str:
        return self.key

    def __str__(self) -> str:
        return self.key


ProgramIdField = Annotated[ProgramId, BeforeValidator(ProgramId.parse)]


# =============================================================================
# CATALOG
# =============================================================================

class Program(BaseModel):
    """Read-only catalog record. Never mutated by the tracker."""
    id: ProgramIdField
    school_name: str
    application_deadline: Optional[date] = None

    # Requirement flags
    gre_required: bool = False
    ccrn_required: bool = False

    # Descriptive
    city: Optional[str] = None
    state: Optional[str] = None
    degree: Optional[str] = None
    program_type: Optional[str] = None
    website_url: Optional[str] = None
    minimum_gpa: Optional[float] = None

    def requires(self, category: str) -> bool:
        """Whether tasks/checklist items of ``category`` apply to this program."""
        flag = CATEGORY_REQUIREMENT_FLAGS.get(category)
        if flag is None:
            return True
        return bool(getattr(self, flag))


# =============================================================================
# RELATIONSHIP RECORDS
# =============================================================================

class ChecklistItem(BaseModel):
    id: str
    label: str
    completed: bool = False
    is_default: bool = False
    hidden: bool = False
    hidden_reason: Optional[HiddenReason] = None
    sort_order: int = 0
    completed_at: Optional[datetime] = None


class LetterOfRecommendation(BaseModel):
    id: str
    person_name: str
    relationship: Optional[str] = None
    email: Optional[str] = None
    status: LorStatus = LorStatus.NOT_REQUESTED
    requested_date: Optional[date] = None
    received_date: Optional[date] = None
    notes: str = ""


class ApplicationDocument(BaseModel):
    id: str
    name: str
    document_type: Optional[str] = None
    file_url: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utcnow)


class ProgramRelationship(BaseModel):
    """
    One per (user, program).

    ``checklist``, ``lors`` and ``documents`` only exist while ``is_target``
    is set; reverting to saved destroys them.
    """
    program_id: ProgramIdField
    is_target: bool = False
    status: ApplicationStatus = ApplicationStatus.RESEARCHING
    notes: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    saved_at: datetime = Field(default_factory=utcnow)

    checklist: List[ChecklistItem] = Field(default_factory=list)
    lors: List[LetterOfRecommendation] = Field(default_factory=list)
    documents: List[ApplicationDocument] = Field(default_factory=list)

    def find_item(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.checklist:
            if item.id == item_id:
                return item
        return None

    @property
    def custom_item_count(self) -> int:
        return sum(1 for item in self.checklist if not item.is_default)


# =============================================================================
# TASKS
# =============================================================================

class TaskTemplate(BaseModel):
    task: str
    category: str
    weeks_before_deadline: int = 0
    is_optional: bool = False
    is_global: bool = False
    triggers_checklist_sync: bool = False


class DeadlineSource(BaseModel):
    """The target program supplying the earliest deadline for a category."""
    deadline: date
    program_id: ProgramIdField
    school_name: str


class GlobalTask(BaseModel):
    """
    Tracked once per user. ``due_date`` and ``linked_program_id`` are derived
    from the target programs at creation (or explicit refresh) time.
    """
    id: str
    task: str
    category: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: Optional[date] = None
    linked_program_id: Optional[ProgramIdField] = None
    linked_school_name: Optional[str] = None
    weeks_before_deadline: int = 0
    is_optional: bool = False
    triggers_checklist_sync: bool = False
    sync_item_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class DashboardTask(BaseModel):
    """Task for users with no target programs yet; never has a due date."""
    id: str
    task: str
    category: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    link: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class ProgramTask(BaseModel):
    """Deadline-driven task derived for a single target program."""
    id: str
    task: str
    category: str
    program_id: ProgramIdField
    school_name: str
    due_date: date
    is_optional: bool = False


# =============================================================================
# VIEWS AND RESULTS
# =============================================================================

class TargetProgramView(BaseModel):
    program: Program
    status: ApplicationStatus
    notes: str
    progress: int
    saved_at: datetime
    checklist: List[ChecklistItem] = Field(default_factory=list)
    visible_checklist: List[ChecklistItem] = Field(default_factory=list)
    hidden_checklist: List[ChecklistItem] = Field(default_factory=list)
    lors: List[LetterOfRecommendation] = Field(default_factory=list)
    documents: List[ApplicationDocument] = Field(default_factory=list)


class SavedProgramView(BaseModel):
    program: Program
    notes: str
    saved_at: datetime


class ActionResult(BaseModel):
    """Outcome of an operation whose rule violations are benign."""
    ok: bool = True
    code: Optional[str] = None
    message: str = ""
    progress: Optional[int] = None


class SyncResult(BaseModel):
    """Per-relationship outcome of a checklist fan-out."""
    item_ids: List[str]
    completed: bool = True
    succeeded: List[ProgramIdField] = Field(default_factory=list)
    failed: List[ProgramIdField] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed
