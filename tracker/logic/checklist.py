"""
Checklist Engine

Generates the default checklist for a program and applies item mutations to
target relationships. Every mutation recomputes progress and persists the
changed items together with the new progress value.
"""

import logging
import uuid
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from .constants import (
    CUSTOM_ITEM_PREFIX,
    DEFAULT_CHECKLIST_ITEMS,
    HiddenReason,
    MAX_CUSTOM_CHECKLIST_ITEMS,
)
from .contracts import ChecklistItem, Program, ProgramId, ProgramRelationship, utcnow
from .errors import CapacityExceeded, InvariantViolation, NotFound
from .progress import calculate_progress

if TYPE_CHECKING:
    from .relationships import RelationshipStore

logger = logging.getLogger(__name__)


def generate_for_program(program: Program) -> List[ChecklistItem]:
    """
    Fresh default checklist for ``program``.

    Items tied to a requirement the program does not have (GRE, CCRN) are
    pre-hidden with reason ``school_not_required``.
    """
    items = []
    for order, (item_id, label, category) in enumerate(DEFAULT_CHECKLIST_ITEMS, start=1):
        not_required = bool(category) and not program.requires(category)
        items.append(ChecklistItem(
            id=item_id,
            label=label,
            is_default=True,
            hidden=not_required,
            hidden_reason=HiddenReason.SCHOOL_NOT_REQUIRED if not_required else None,
            sort_order=order,
        ))
    return items


def new_custom_item_id() -> str:
    return f"{CUSTOM_ITEM_PREFIX}{uuid.uuid4().hex[:12]}"


def apply_completion(relationship: ProgramRelationship, item_ids: Iterable[str],
                     completed: bool) -> Tuple[ProgramRelationship, List[ChecklistItem]]:
    """
    Copy of ``relationship`` with the listed items set to ``completed``.

    Returns the copy and the items that actually changed. Item ids the
    checklist does not contain are skipped. Hidden items are updated too.
    """
    wanted = set(item_ids)
    now = utcnow()
    checklist = []
    changed = []
    for item in relationship.checklist:
        if item.id in wanted and item.completed != completed:
            item = item.model_copy(update={
                "completed": completed,
                "completed_at": now if completed else None,
            })
            changed.append(item)
        checklist.append(item)
    if not changed:
        return relationship, []
    updated = relationship.model_copy(update={
        "checklist": checklist,
        "progress": calculate_progress(checklist),
    })
    return updated, changed


class ChecklistEngine:
    """Item-level operations on target relationships held by a RelationshipStore."""

    def __init__(self, store: "RelationshipStore"):
        self.store = store

    generate_for_program = staticmethod(generate_for_program)

    def _require_item(self, rel: ProgramRelationship, item_id: str) -> ChecklistItem:
        item = rel.find_item(item_id)
        if item is None:
            raise NotFound(f"Checklist item {item_id} not found on {rel.program_id}")
        return item

    def _replace_items(self, rel: ProgramRelationship,
                       updates: Dict[str, ChecklistItem]) -> ProgramRelationship:
        checklist = [updates.get(item.id, item) for item in rel.checklist]
        return rel.model_copy(update={
            "checklist": checklist,
            "progress": calculate_progress(checklist),
        })

    def _persist_items(self, operation: str, rel: ProgramRelationship,
                       items: List[ChecklistItem]) -> ProgramRelationship:
        store = self.store
        store.write(operation, lambda: store.port.upsert_checklist_items(
            store.user_id, rel.program_id, items, rel.progress))
        store.commit(rel)
        return rel

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def toggle(self, program_id: ProgramId, item_id: str,
               completed: Optional[bool] = None) -> ProgramRelationship:
        """
        Flip an item's completion, or set it when ``completed`` is given.

        Setting an item to the state it already has writes nothing.
        """
        rel = self.store.require_target(program_id)
        item = self._require_item(rel, item_id)
        target_state = (not item.completed) if completed is None else completed

        updated, changed = apply_completion(rel, [item.id], target_state)
        if not changed:
            return rel
        logger.debug(f"Checklist {rel.program_id}/{item_id} completed={target_state}")
        return self._persist_items("toggle_checklist_item", updated, changed)

    def apply_to_relationship(self, rel: ProgramRelationship, item_ids: Iterable[str],
                              completed: bool) -> ProgramRelationship:
        """Set completion on several items of one relationship as one write."""
        updated, changed = apply_completion(rel, item_ids, completed)
        if not changed:
            return rel
        return self._persist_items("sync_checklist_items", updated, changed)

    # =========================================================================
    # CUSTOM ITEMS
    # =========================================================================

    def add_custom(self, program_id: ProgramId, label: str) -> ChecklistItem:
        rel = self.store.require_target(program_id)
        label = (label or "").strip()
        if not label:
            raise InvariantViolation("Checklist item label must not be empty")
        if rel.custom_item_count >= MAX_CUSTOM_CHECKLIST_ITEMS:
            raise CapacityExceeded(
                f"Maximum of {MAX_CUSTOM_CHECKLIST_ITEMS} custom checklist items reached"
            )

        next_order = max((item.sort_order for item in rel.checklist), default=0) + 1
        item = ChecklistItem(id=new_custom_item_id(), label=label, sort_order=next_order)
        checklist = rel.checklist + [item]
        updated = rel.model_copy(update={
            "checklist": checklist,
            "progress": calculate_progress(checklist),
        })
        self._persist_items("add_checklist_item", updated, [item])
        logger.info(f"Added custom checklist item {item.id} to {rel.program_id}")
        return item

    def remove_custom(self, program_id: ProgramId, item_id: str) -> ProgramRelationship:
        rel = self.store.require_target(program_id)
        item = self._require_item(rel, item_id)
        if item.is_default:
            raise InvariantViolation(f"Default checklist item {item_id} cannot be removed; hide it instead")

        checklist = [i for i in rel.checklist if i.id != item_id]
        updated = rel.model_copy(update={
            "checklist": checklist,
            "progress": calculate_progress(checklist),
        })
        store = self.store
        store.write("remove_checklist_item", lambda: store.port.delete_checklist_item(
            store.user_id, rel.program_id, item_id, updated.progress))
        store.commit(updated)
        logger.info(f"Removed custom checklist item {item_id} from {rel.program_id}")
        return updated

    # =========================================================================
    # VISIBILITY
    # =========================================================================

    def hide(self, program_id: ProgramId, item_id: str,
             reason: HiddenReason = HiddenReason.USER_HIDDEN) -> ProgramRelationship:
        rel = self.store.require_target(program_id)
        item = self._require_item(rel, item_id)
        reason = HiddenReason(reason)
        if item.hidden and item.hidden_reason == reason:
            return rel

        hidden = item.model_copy(update={"hidden": True, "hidden_reason": reason})
        updated = self._replace_items(rel, {item_id: hidden})
        return self._persist_items("hide_checklist_item", updated, [hidden])

    def reveal(self, program_id: ProgramId, item_id: str) -> ProgramRelationship:
        rel = self.store.require_target(program_id)
        item = self._require_item(rel, item_id)
        if not item.hidden:
            return rel

        shown = item.model_copy(update={"hidden": False, "hidden_reason": None})
        updated = self._replace_items(rel, {item_id: shown})
        return self._persist_items("reveal_checklist_item", updated, [shown])

    def hidden_items(self, program_id: ProgramId) -> List[ChecklistItem]:
        rel = self.store.require_target(program_id)
        return [item for item in rel.checklist if item.hidden]
