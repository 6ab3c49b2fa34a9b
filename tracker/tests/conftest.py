"""
Shared fixtures: a small program catalog, both persistence backends and a
store that can be told to reject writes.
"""

from datetime import date
from typing import Dict, Iterable, Optional, Set

import pytest
from sqlalchemy.orm import sessionmaker

from db import create_db_engine, init_db
from tracker.logic import InMemoryCatalog, Program, ProgramId, ProgramTracker
from tracker.logic.errors import PersistenceFailure
from tracker.logic.local_store import LocalTrackerStore
from tracker.logic.ports import PersistencePort
from tracker.logic.sql_store import SqlTrackerStore

USER_ID = "user-123"

PROGRAMS = [
    Program(id=1, school_name="Alpha University", application_deadline=date(2026, 12, 1),
            gre_required=True, ccrn_required=True, state="CA"),
    Program(id=2, school_name="Beta College", application_deadline=date(2026, 10, 15),
            gre_required=False, ccrn_required=True, state="TX"),
    Program(id=3, school_name="Gamma Institute", application_deadline=date(2027, 1, 10),
            gre_required=True, ccrn_required=False, state="NY"),
    Program(id=4, school_name="Delta School of Nursing", application_deadline=None,
            gre_required=True, ccrn_required=True),
]


@pytest.fixture
def catalog():
    return InMemoryCatalog(PROGRAMS)


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture(params=["sql", "local"])
def store(request, session_factory):
    if request.param == "sql":
        return SqlTrackerStore(session_factory)
    return LocalTrackerStore()


@pytest.fixture
def tracker(store, catalog):
    return ProgramTracker(USER_ID, store, catalog, write_retries=0).load()


class FlakyStore(PersistencePort):
    """
    Delegates to a real store but rejects selected writes.

    ``fail_times[operation]`` rejects that many calls of the operation
    (-1 rejects forever). ``fail_programs`` rejects checklist writes for
    those programs.
    """

    def __init__(self, inner: PersistencePort):
        self.inner = inner
        self.fail_times: Dict[str, int] = {}
        self.fail_programs: Set[ProgramId] = set()
        self.calls: Dict[str, int] = {}

    def _check(self, operation: str, program_id: Optional[ProgramId] = None) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        if program_id is not None and program_id in self.fail_programs:
            raise PersistenceFailure(f"{operation} rejected for {program_id}", operation=operation)
        remaining = self.fail_times.get(operation, 0)
        if remaining:
            if remaining > 0:
                self.fail_times[operation] = remaining - 1
            raise PersistenceFailure(f"{operation} rejected", operation=operation)

    def list_relationships_for_user(self, user_id):
        return self.inner.list_relationships_for_user(user_id)

    def upsert_relationship(self, user_id, relationship, replace_sub_records=False):
        self._check("upsert_relationship")
        self.inner.upsert_relationship(user_id, relationship, replace_sub_records)

    def delete_relationship(self, user_id, program_id):
        self._check("delete_relationship")
        self.inner.delete_relationship(user_id, program_id)

    def upsert_checklist_items(self, user_id, program_id, items: Iterable, progress):
        self._check("upsert_checklist_items", program_id)
        self.inner.upsert_checklist_items(user_id, program_id, items, progress)

    def delete_checklist_item(self, user_id, program_id, item_id, progress):
        self._check("delete_checklist_item", program_id)
        self.inner.delete_checklist_item(user_id, program_id, item_id, progress)

    def replace_lors(self, user_id, program_id, lors):
        self._check("replace_lors")
        self.inner.replace_lors(user_id, program_id, lors)

    def replace_documents(self, user_id, program_id, documents):
        self._check("replace_documents")
        self.inner.replace_documents(user_id, program_id, documents)

    def list_global_tasks(self, user_id):
        return self.inner.list_global_tasks(user_id)

    def upsert_global_task(self, user_id, task):
        self._check("upsert_global_task")
        self.inner.upsert_global_task(user_id, task)

    def delete_global_task(self, user_id, task_id):
        self._check("delete_global_task")
        self.inner.delete_global_task(user_id, task_id)

    def list_dashboard_tasks(self, user_id):
        return self.inner.list_dashboard_tasks(user_id)

    def upsert_dashboard_task(self, user_id, task):
        self._check("upsert_dashboard_task")
        self.inner.upsert_dashboard_task(user_id, task)

    def delete_dashboard_task(self, user_id, task_id):
        self._check("delete_dashboard_task")
        self.inner.delete_dashboard_task(user_id, task_id)


@pytest.fixture
def flaky_store(store):
    return FlakyStore(store)
