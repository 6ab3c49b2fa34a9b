"""
Progress calculator: visible items only, half-up rounding.
"""

import pytest

from tracker.logic import ChecklistItem, calculate_progress
from tracker.logic.constants import HiddenReason


def _items(flags):
    # flags: list of (completed, hidden)
    return [
        ChecklistItem(
            id=f"i{n}",
            label=f"Item {n}",
            completed=completed,
            hidden=hidden,
            hidden_reason=HiddenReason.USER_HIDDEN if hidden else None,
        )
        for n, (completed, hidden) in enumerate(flags)
    ]


def test_empty_checklist_is_zero():
    assert calculate_progress([]) == 0


def test_all_hidden_is_zero():
    assert calculate_progress(_items([(True, True), (False, True)])) == 0


@pytest.mark.parametrize("completed,total,expected", [
    (0, 3, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 2, 50),
    (1, 8, 13),
    (5, 12, 42),
    (3, 3, 100),
])
def test_rounds_half_up(completed, total, expected):
    flags = [(n < completed, False) for n in range(total)]
    assert calculate_progress(_items(flags)) == expected


def test_hidden_items_leave_numerator_and_denominator():
    # two visible (one done), two hidden and done
    items = _items([(True, False), (False, False), (True, True), (True, True)])
    assert calculate_progress(items) == 50


def test_hiding_completed_item_keeps_full_checklist_at_100():
    items = _items([(True, False), (True, False), (True, False)])
    assert calculate_progress(items) == 100
    items[0] = items[0].model_copy(update={"hidden": True, "hidden_reason": HiddenReason.USER_HIDDEN})
    assert calculate_progress(items) == 100
