"""
Global tasks: earliest-deadline scheduling, completion, checklist fan-out,
per-program deadline tasks and dashboard tasks.
"""

from datetime import date

import pytest

from tracker.logic import (
    InvariantViolation,
    NotFound,
    ProgramId,
    ProgramTracker,
    TaskStatus,
    TaskTemplate,
)
from tracker.logic.task_planner import calculate_due_date

from conftest import USER_ID


def test_due_date_arithmetic():
    assert calculate_due_date(date(2025, 3, 1), 4) == date(2025, 2, 1)
    assert calculate_due_date(date(2025, 3, 1), 0) == date(2025, 3, 1)


# =============================================================================
# EARLIEST DEADLINE
# =============================================================================

def test_earliest_deadline_respects_requirement_flags(tracker):
    for school_id in (1, 2, 3):
        tracker.convert_to_target(school_id)

    gre = tracker.get_earliest_deadline_for_category("gre")
    assert gre.deadline == date(2026, 12, 1)  # Beta does not require the GRE
    assert gre.program_id == ProgramId(school_id=1)
    assert gre.school_name == "Alpha University"

    ccrn = tracker.get_earliest_deadline_for_category("ccrn")
    assert ccrn.deadline == date(2026, 10, 15)
    assert ccrn.program_id == ProgramId(school_id=2)

    # Categories without a requirement flag apply to every target
    assert tracker.get_earliest_deadline_for_category("resume").deadline == date(2026, 10, 15)


def test_earliest_deadline_ignores_saved_and_undated_programs(tracker):
    tracker.save_program(2)
    tracker.convert_to_target(4)
    assert tracker.get_earliest_deadline_for_category("ccrn") is None


def test_earliest_deadline_with_no_targets(tracker):
    assert tracker.get_earliest_deadline_for_category("gre") is None


# =============================================================================
# CREATE / COMPLETE / DELETE
# =============================================================================

def test_add_task_by_template_name(tracker):
    tracker.convert_to_target(1)
    tracker.convert_to_target(3)

    task = tracker.add_global_task("GRE Exam")

    assert task.id.startswith("global_gre_exam_")
    assert task.category == "gre"
    assert task.status == TaskStatus.NOT_STARTED
    assert task.due_date == date(2026, 7, 14)  # 20 weeks before 2026-12-01
    assert task.linked_program_id == ProgramId(school_id=1)
    assert task.linked_school_name == "Alpha University"
    assert task.triggers_checklist_sync
    assert task.sync_item_ids == ["c5", "c6"]
    assert tracker.list_global_tasks() == [task]


def test_add_task_from_template(tracker):
    tracker.convert_to_target(2)
    task = tracker.add_global_task(TaskTemplate(task="CCRN Exam", category="ccrn",
                                                weeks_before_deadline=18, triggers_checklist_sync=True))
    assert task.due_date == date(2026, 6, 11)
    assert task.sync_item_ids == ["c7"]


def test_add_task_without_resolvable_deadline(tracker):
    tracker.convert_to_target(2)  # does not require the GRE

    task = tracker.add_global_task("GRE Exam")

    assert task.due_date is None
    assert task.linked_program_id is None
    assert tracker.complete_global_task(task.id).status == TaskStatus.COMPLETED


def test_add_task_unknown_template_name(tracker):
    with pytest.raises(NotFound):
        tracker.add_global_task("Climb Everest")


def test_duplicate_categories_are_allowed(tracker):
    tracker.convert_to_target(1)
    first = tracker.add_global_task("GRE Exam")
    second = tracker.add_global_task("GRE Exam")
    assert first.id != second.id
    assert len(tracker.list_global_tasks()) == 2


def test_complete_returns_task_and_is_idempotent(tracker):
    tracker.convert_to_target(1)
    task = tracker.add_global_task("GRE Exam")

    done = tracker.complete_global_task(task.id)
    again = tracker.complete_global_task(task.id)

    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at is not None
    assert again == done


def test_complete_does_not_touch_checklists(tracker):
    tracker.convert_to_target(1)
    task = tracker.add_global_task("GRE Exam")
    tracker.complete_global_task(task.id)

    rel = tracker.relationships.require(1)
    assert not rel.find_item("c5").completed
    assert rel.progress == 0


def test_completed_task_cannot_be_reopened(tracker):
    tracker.convert_to_target(1)
    task = tracker.add_global_task("GRE Exam")
    tracker.complete_global_task(task.id)

    result = tracker.update_global_task_status(task.id, "not_started")

    assert not result.ok
    assert result.code == InvariantViolation.code
    assert tracker.global_tasks.get(task.id).status == TaskStatus.COMPLETED


def test_complete_unknown_task(tracker):
    with pytest.raises(NotFound):
        tracker.complete_global_task("global_nope")


def test_delete_task(tracker):
    task = tracker.add_global_task("CCRN Exam")
    tracker.delete_global_task(task.id)
    assert tracker.list_global_tasks() == []
    with pytest.raises(NotFound):
        tracker.delete_global_task(task.id)


def test_tasks_survive_reload(tracker, catalog):
    tracker.convert_to_target(1)
    task = tracker.complete_global_task(tracker.add_global_task("GRE Exam").id)

    reloaded = ProgramTracker(USER_ID, tracker.relationships.port, catalog).load()
    restored = reloaded.global_tasks.get(task.id)
    assert restored.status == TaskStatus.COMPLETED
    assert restored.due_date == task.due_date
    assert restored.linked_program_id == ProgramId(school_id=1)
    assert restored.sync_item_ids == ["c5", "c6"]


# =============================================================================
# DEADLINE REFRESH
# =============================================================================

def test_due_date_is_stale_until_refreshed(tracker):
    tracker.convert_to_target(3)
    task = tracker.add_global_task("GRE Exam")
    assert task.linked_program_id == ProgramId(school_id=3)

    tracker.convert_to_target(1)
    assert tracker.global_tasks.get(task.id).linked_program_id == ProgramId(school_id=3)

    updated = tracker.refresh_global_task_deadlines()

    assert [t.id for t in updated] == [task.id]
    refreshed = tracker.global_tasks.get(task.id)
    assert refreshed.linked_program_id == ProgramId(school_id=1)
    assert refreshed.due_date == date(2026, 7, 14)
    assert tracker.refresh_global_task_deadlines() == []


def test_refresh_skips_completed_tasks(tracker):
    tracker.convert_to_target(3)
    task = tracker.complete_global_task(tracker.add_global_task("GRE Exam").id)
    tracker.convert_to_target(1)

    assert tracker.refresh_global_task_deadlines() == []
    assert tracker.global_tasks.get(task.id).due_date == task.due_date


# =============================================================================
# CHECKLIST SYNC
# =============================================================================

def test_sync_marks_items_on_every_target(tracker):
    tracker.convert_to_target(1)
    tracker.convert_to_target(2)
    tracker.save_program(3)
    task = tracker.complete_global_task(tracker.add_global_task("GRE Exam").id)

    result = tracker.sync_checklist_items_across_programs(task.sync_item_ids)

    assert result.ok
    assert set(result.succeeded) == {ProgramId(school_id=1), ProgramId(school_id=2)}
    alpha = tracker.relationships.require(1)
    beta = tracker.relationships.require(2)
    assert alpha.find_item("c5").completed and alpha.find_item("c6").completed
    assert alpha.progress == 17  # 2 of 12
    # Hidden in Beta, yet still marked
    assert beta.find_item("c5").completed and beta.find_item("c5").hidden
    assert beta.progress == 0
    assert tracker.relationships.require(3).checklist == []


def test_sync_can_clear_items(tracker):
    tracker.convert_to_target(1)
    tracker.sync_checklist_items_across_programs(["c7"])
    tracker.sync_checklist_items_across_programs(["c7"], completed=False)

    assert not tracker.relationships.require(1).find_item("c7").completed
    assert tracker.relationships.require(1).progress == 0


def test_sync_with_unknown_item_ids_is_harmless(tracker):
    tracker.convert_to_target(1)
    result = tracker.sync_checklist_items_across_programs(["c404"])
    assert result.ok
    assert result.succeeded == [ProgramId(school_id=1)]
    assert tracker.relationships.require(1).progress == 0


def test_sync_restricted_to_program_ids(tracker):
    tracker.convert_to_target(1)
    tracker.convert_to_target(3)

    result = tracker.sync_checklist_items_across_programs(["c1"], program_ids=["school_3"])

    assert result.succeeded == [ProgramId(school_id=3)]
    assert tracker.relationships.require(3).find_item("c1").completed
    assert not tracker.relationships.require(1).find_item("c1").completed


# =============================================================================
# PER-PROGRAM AND DASHBOARD TASKS
# =============================================================================

def test_tasks_for_program(tracker):
    tracker.convert_to_target(1)

    tasks = tracker.tasks_for_program(1)

    assert tasks
    assert all(t.category not in ("gre", "ccrn", "ccrn-prep") for t in tasks)
    assert [t.due_date for t in tasks] == sorted(t.due_date for t in tasks)
    submit = next(t for t in tasks if t.task == "Submit Application")
    assert submit.due_date == date(2026, 12, 1)
    assert submit.id.startswith("task_school_1_")


def test_tasks_for_program_without_deadline(tracker):
    tracker.convert_to_target(4)
    assert tracker.tasks_for_program(4) == []


def test_dashboard_tasks(tracker):
    suggestions = tracker.suggested_dashboard_tasks()
    assert "Schedule GRE" in [s.task for s in suggestions]

    task = tracker.add_dashboard_task("Schedule GRE", category="gre")
    assert "Schedule GRE" not in [s.task for s in tracker.suggested_dashboard_tasks()]

    done = tracker.complete_dashboard_task(task.id)
    assert done.status == TaskStatus.COMPLETED
    assert tracker.list_dashboard_tasks() == [done]

    tracker.delete_dashboard_task(task.id)
    assert tracker.list_dashboard_tasks() == []
    with pytest.raises(NotFound):
        tracker.complete_dashboard_task(task.id)
