# Export all tracker tables for easy imports
from .base import Base
from .saved_program import SavedProgram
from .checklist import ChecklistEntry
from .lor import LorEntry
from .document import DocumentEntry
from .task import GlobalTaskEntry, DashboardTaskEntry

__all__ = [
    "Base",
    "SavedProgram",
    "ChecklistEntry",
    "LorEntry",
    "DocumentEntry",
    "GlobalTaskEntry",
    "DashboardTaskEntry",
]
