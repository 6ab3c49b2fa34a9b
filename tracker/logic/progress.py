"""
Progress Calculator

The only place relationship progress is derived. Hidden items count toward
neither numerator nor denominator.
"""

from typing import Iterable

from .contracts import ChecklistItem


def calculate_progress(items: Iterable[ChecklistItem]) -> int:
    """
    Percentage of visible checklist items that are completed.

    Returns 0 when no item is visible.
    """
    visible = [item for item in items if not item.hidden]
    if not visible:
        return 0
    completed = sum(1 for item in visible if item.completed)
    total = len(visible)
    # Integer half-up rounding of 100 * completed / total
    return (200 * completed + total) // (2 * total)
