"""
Persistence Port and Program Catalog

Abstract interfaces the tracker engine is written against. Concrete stores
live in sql_store.py (remote relational) and local_store.py (anonymous
key-value fallback); the engine never knows which one it holds.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .contracts import (
    ApplicationDocument,
    ChecklistItem,
    DashboardTask,
    GlobalTask,
    LetterOfRecommendation,
    Program,
    ProgramId,
    ProgramRelationship,
)


class PersistencePort(ABC):
    """
    Keyed CRUD store for one user's tracker records.

    Every write either completes or raises PersistenceFailure. Calls that
    carry a ``progress`` value persist it together with the checklist change.
    """

    # -- relationships -------------------------------------------------------

    @abstractmethod
    def list_relationships_for_user(self, user_id: str) -> List[ProgramRelationship]:
        ...

    @abstractmethod
    def upsert_relationship(
        self,
        user_id: str,
        relationship: ProgramRelationship,
        replace_sub_records: bool = False,
    ) -> None:
        """
        Write the relationship row. With ``replace_sub_records`` the stored
        checklist, LOR and document records are replaced by the ones on
        ``relationship`` in the same unit of work.
        """

    @abstractmethod
    def delete_relationship(self, user_id: str, program_id: ProgramId) -> None:
        ...

    # -- checklist -----------------------------------------------------------

    @abstractmethod
    def upsert_checklist_items(
        self,
        user_id: str,
        program_id: ProgramId,
        items: Iterable[ChecklistItem],
        progress: int,
    ) -> None:
        ...

    @abstractmethod
    def delete_checklist_item(
        self,
        user_id: str,
        program_id: ProgramId,
        item_id: str,
        progress: int,
    ) -> None:
        ...

    # -- LORs and documents --------------------------------------------------

    @abstractmethod
    def replace_lors(self, user_id: str, program_id: ProgramId,
                     lors: Iterable[LetterOfRecommendation]) -> None:
        ...

    @abstractmethod
    def replace_documents(self, user_id: str, program_id: ProgramId,
                          documents: Iterable[ApplicationDocument]) -> None:
        ...

    # -- tasks ---------------------------------------------------------------

    @abstractmethod
    def list_global_tasks(self, user_id: str) -> List[GlobalTask]:
        ...

    @abstractmethod
    def upsert_global_task(self, user_id: str, task: GlobalTask) -> None:
        ...

    @abstractmethod
    def delete_global_task(self, user_id: str, task_id: str) -> None:
        ...

    @abstractmethod
    def list_dashboard_tasks(self, user_id: str) -> List[DashboardTask]:
        ...

    @abstractmethod
    def upsert_dashboard_task(self, user_id: str, task: DashboardTask) -> None:
        ...

    @abstractmethod
    def delete_dashboard_task(self, user_id: str, task_id: str) -> None:
        ...


class ProgramCatalog(ABC):
    """Read-only program reference data."""

    @abstractmethod
    def get_program(self, program_id: ProgramId) -> Optional[Program]:
        ...

    @abstractmethod
    def list_programs(self) -> List[Program]:
        ...


class InMemoryCatalog(ProgramCatalog):
    """Catalog over an already-loaded list of programs."""

    def __init__(self, programs: Iterable[Program] = ()):
        self._programs: Dict[ProgramId, Program] = {p.id: p for p in programs}

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "InMemoryCatalog":
        return cls(Program(**record) for record in records)

    def get_program(self, program_id: ProgramId) -> Optional[Program]:
        return self._programs.get(ProgramId.parse(program_id))

    def list_programs(self) -> List[Program]:
        return sorted(self._programs.values(), key=lambda p: p.id.school_id)
