"""
Local Tracker Store

Anonymous key-value fallback for the persistence port. Records are kept as
JSON-ready dicts under per-user keys:

    <user_id>:relationships     {program key: relationship}
    <user_id>:global_tasks      [task, ...]
    <user_id>:dashboard_tasks   [task, ...]

When a path is given every write is mirrored to that JSON file.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .contracts import (
    ApplicationDocument,
    ChecklistItem,
    DashboardTask,
    GlobalTask,
    LetterOfRecommendation,
    ProgramId,
    ProgramRelationship,
)
from .errors import PersistenceFailure
from .ports import PersistencePort

logger = logging.getLogger(__name__)

RELATIONSHIPS_KEY = "relationships"
GLOBAL_TASKS_KEY = "global_tasks"
DASHBOARD_TASKS_KEY = "dashboard_tasks"


class LocalTrackerStore(PersistencePort):
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._records: Dict[str, Any] = self._load()

    # -- raw key-value access ------------------------------------------------

    def _load(self) -> Dict[str, Any]:
        if not self.path or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # A corrupt mirror must not block the anonymous session
            logger.warning(f"Ignoring unreadable local store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self, records: Dict[str, Any], operation: str) -> None:
        if not self.path:
            return
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(records, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Local store {operation} failed: {e}")
            raise PersistenceFailure(f"{operation} failed: {e}", operation=operation) from e

    @staticmethod
    def _key(user_id: str, name: str) -> str:
        return f"{user_id}:{name}"

    def _read(self, user_id: str, name: str, default):
        value = self._records.get(self._key(user_id, name))
        if value is None:
            return default
        return json.loads(json.dumps(value))

    def _update(self, user_id: str, name: str, default,
                mutate: Callable[[Any], bool], operation: str) -> None:
        """
        Read, mutate and write back one key under the store lock.

        ``mutate`` edits the value in place and returns False when there is
        nothing to write. Memory is committed only once the mirror accepted
        the write.
        """
        with self._lock:
            value = self._read(user_id, name, default)
            if mutate(value) is False:
                return
            records = dict(self._records)
            records[self._key(user_id, name)] = value
            self._flush(records, operation)
            self._records = records

    # -- relationships -------------------------------------------------------

    def _relationships(self, user_id: str) -> Dict[str, dict]:
        value = self._read(user_id, RELATIONSHIPS_KEY, {})
        return value if isinstance(value, dict) else {}

    def _update_relationships(self, user_id: str, mutate: Callable[[Dict[str, dict]], bool],
                              operation: str) -> None:
        self._update(user_id, RELATIONSHIPS_KEY, {}, mutate, operation)

    def _update_relationship(self, user_id: str, program_id: ProgramId,
                             mutate: Callable[[dict], None], operation: str) -> None:
        def apply(relationships: Dict[str, dict]) -> None:
            record = relationships.get(program_id.key)
            if record is None:
                raise PersistenceFailure(
                    f"{operation} failed: no stored relationship for {program_id}",
                    operation=operation,
                )
            mutate(record)

        self._update_relationships(user_id, apply, operation)

    def list_relationships_for_user(self, user_id: str) -> List[ProgramRelationship]:
        return [ProgramRelationship(**record) for record in self._relationships(user_id).values()]

    def upsert_relationship(self, user_id: str, relationship: ProgramRelationship,
                            replace_sub_records: bool = False) -> None:
        record = relationship.model_dump(mode="json")

        def apply(relationships: Dict[str, dict]) -> None:
            existing = relationships.get(relationship.program_id.key)
            if existing is not None and not replace_sub_records:
                for field in ("checklist", "lors", "documents"):
                    record[field] = existing.get(field, [])
            relationships[relationship.program_id.key] = record

        self._update_relationships(user_id, apply, "upsert_relationship")

    def delete_relationship(self, user_id: str, program_id: ProgramId) -> None:
        def apply(relationships: Dict[str, dict]) -> bool:
            return relationships.pop(program_id.key, None) is not None

        self._update_relationships(user_id, apply, "delete_relationship")

    # -- checklist -----------------------------------------------------------

    def upsert_checklist_items(self, user_id: str, program_id: ProgramId,
                               items: Iterable[ChecklistItem], progress: int) -> None:
        items = [item.model_dump(mode="json") for item in items]

        def apply(record: dict) -> None:
            checklist = record.get("checklist", [])
            positions = {entry["id"]: index for index, entry in enumerate(checklist)}
            for data in items:
                if data["id"] in positions:
                    checklist[positions[data["id"]]] = data
                else:
                    positions[data["id"]] = len(checklist)
                    checklist.append(data)
            record["checklist"] = checklist
            record["progress"] = progress

        self._update_relationship(user_id, program_id, apply, "upsert_checklist_items")

    def delete_checklist_item(self, user_id: str, program_id: ProgramId,
                              item_id: str, progress: int) -> None:
        def apply(record: dict) -> None:
            record["checklist"] = [e for e in record.get("checklist", []) if e["id"] != item_id]
            record["progress"] = progress

        self._update_relationship(user_id, program_id, apply, "delete_checklist_item")

    # -- LORs and documents --------------------------------------------------

    def replace_lors(self, user_id: str, program_id: ProgramId,
                     lors: Iterable[LetterOfRecommendation]) -> None:
        lors = [lor.model_dump(mode="json") for lor in lors]

        def apply(record: dict) -> None:
            record["lors"] = lors

        self._update_relationship(user_id, program_id, apply, "replace_lors")

    def replace_documents(self, user_id: str, program_id: ProgramId,
                          documents: Iterable[ApplicationDocument]) -> None:
        documents = [d.model_dump(mode="json") for d in documents]

        def apply(record: dict) -> None:
            record["documents"] = documents

        self._update_relationship(user_id, program_id, apply, "replace_documents")

    # -- tasks ---------------------------------------------------------------

    def _upsert_listed(self, user_id: str, name: str, task, operation: str) -> None:
        data = task.model_dump(mode="json")

        def apply(tasks: list) -> None:
            for index, existing in enumerate(tasks):
                if existing["id"] == task.id:
                    tasks[index] = data
                    break
            else:
                tasks.append(data)

        self._update(user_id, name, [], apply, operation)

    def _delete_listed(self, user_id: str, name: str, task_id: str, operation: str) -> None:
        def apply(tasks: list) -> bool:
            remaining = [t for t in tasks if t["id"] != task_id]
            if len(remaining) == len(tasks):
                return False
            tasks[:] = remaining
            return True

        self._update(user_id, name, [], apply, operation)

    def list_global_tasks(self, user_id: str) -> List[GlobalTask]:
        return [GlobalTask(**t) for t in self._read(user_id, GLOBAL_TASKS_KEY, [])]

    def upsert_global_task(self, user_id: str, task: GlobalTask) -> None:
        self._upsert_listed(user_id, GLOBAL_TASKS_KEY, task, "upsert_global_task")

    def delete_global_task(self, user_id: str, task_id: str) -> None:
        self._delete_listed(user_id, GLOBAL_TASKS_KEY, task_id, "delete_global_task")

    def list_dashboard_tasks(self, user_id: str) -> List[DashboardTask]:
        return [DashboardTask(**t) for t in self._read(user_id, DASHBOARD_TASKS_KEY, [])]

    def upsert_dashboard_task(self, user_id: str, task: DashboardTask) -> None:
        self._upsert_listed(user_id, DASHBOARD_TASKS_KEY, task, "upsert_dashboard_task")

    def delete_dashboard_task(self, user_id: str, task_id: str) -> None:
        self._delete_listed(user_id, DASHBOARD_TASKS_KEY, task_id, "delete_dashboard_task")
