"""
HTTP layer via FastAPI's TestClient.
"""

import threading

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from db import create_db_engine
from tracker.logic import TrackerRegistry, calculate_progress
from tracker.logic.local_store import LocalTrackerStore
from tracker.routes import get_catalog, get_local_store, get_registry, get_session_factory, router

BASE = "/tracker/user-123"


def _make_client(catalog, session_factory, local_store=None, registry=None):
    app = FastAPI()
    app.include_router(router)
    if local_store is None:
        local_store = LocalTrackerStore()
    if registry is None:
        registry = TrackerRegistry()
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_local_store] = lambda: local_store
    app.dependency_overrides[get_registry] = lambda: registry
    return TestClient(app)


@pytest.fixture
def client(catalog, session_factory):
    return _make_client(catalog, session_factory)


def test_health(client):
    response = client.get("/tracker/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_save_then_target_then_toggle(client):
    assert client.post(f"{BASE}/programs/school_1/save").json()["ok"] is True

    listing = client.get(f"{BASE}/programs").json()
    assert [p["program"]["school_name"] for p in listing["saved"]] == ["Alpha University"]
    assert listing["has_targets"] is False

    assert client.post(f"{BASE}/programs/1/target").json()["ok"] is True
    toggled = client.post(f"{BASE}/programs/1/checklist/c1/toggle", json={"completed": True})
    assert toggled.status_code == 200
    assert toggled.json()["progress"] == 8

    view = client.get(f"{BASE}/programs/school_1").json()
    assert view["program"]["id"] == "school_1"
    assert view["progress"] == 8
    assert len(view["visible_checklist"]) == 12


def test_toggle_without_body_flips(client):
    client.post(f"{BASE}/programs/2/target")
    assert client.post(f"{BASE}/programs/2/checklist/c1/toggle").json()["progress"] == 10
    assert client.post(f"{BASE}/programs/2/checklist/c1/toggle").json()["progress"] == 0


def test_unknown_program_is_404(client):
    assert client.post(f"{BASE}/programs/999/save").status_code == 404
    assert client.get(f"{BASE}/programs/999").status_code == 404


def test_malformed_program_id_is_400(client):
    assert client.post(f"{BASE}/programs/not-a-school/save").status_code == 400


def test_target_of_unknown_program_reports_failure(client):
    response = client.post(f"{BASE}/programs/999/target")
    assert response.status_code == 200
    assert response.json()["ok"] is False


def test_custom_item_capacity(client):
    client.post(f"{BASE}/programs/1/target")
    for n in range(3):
        assert client.post(f"{BASE}/programs/1/checklist", json={"label": f"Extra {n}"}).json()["ok"]

    response = client.post(f"{BASE}/programs/1/checklist", json={"label": "Extra 4"})

    assert response.status_code == 200
    assert response.json() == {
        "ok": False,
        "code": "capacity_exceeded",
        "message": "Maximum of 3 custom checklist items reached",
        "progress": None,
    }


def test_default_item_delete_is_refused(client):
    client.post(f"{BASE}/programs/1/target")
    response = client.delete(f"{BASE}/programs/1/checklist/c1")
    assert response.status_code == 200
    assert response.json()["code"] == "invariant_violation"


def test_hide_and_reveal(client):
    client.post(f"{BASE}/programs/1/target")
    client.post(f"{BASE}/programs/1/checklist/c2/toggle")
    assert client.post(f"{BASE}/programs/1/checklist/c2/hide").json()["progress"] == 0
    assert client.post(f"{BASE}/programs/1/checklist/c2/reveal").json()["progress"] == 8


def test_patch_and_revert(client):
    client.post(f"{BASE}/programs/3/target")
    patched = client.patch(f"{BASE}/programs/3", json={
        "status": "submitted",
        "notes": "Submitted early",
        "lors": [{"id": "lor1", "person_name": "Dr. Rivera"}],
    })
    assert patched.json()["ok"] is True

    view = client.get(f"{BASE}/programs/3").json()
    assert view["status"] == "submitted"
    assert view["lors"][0]["person_name"] == "Dr. Rivera"

    assert client.post(f"{BASE}/programs/3/revert").json()["ok"] is True
    listing = client.get(f"{BASE}/programs").json()
    assert listing["targets"] == []
    assert listing["saved"][0]["notes"] == ""


def test_delete_program(client):
    client.post(f"{BASE}/programs/1/save")
    assert client.delete(f"{BASE}/programs/1").json()["status"] == "ok"
    assert client.delete(f"{BASE}/programs/1").status_code == 404


def test_program_tasks(client):
    client.post(f"{BASE}/programs/1/target")
    tasks = client.get(f"{BASE}/programs/1/tasks").json()
    assert tasks[-1]["task"] == "Submit Application"
    assert tasks[-1]["due_date"] == "2026-12-01"


def test_global_task_flow_with_sync(client):
    client.post(f"{BASE}/programs/1/target")
    client.post(f"{BASE}/programs/2/target")

    created = client.post(f"{BASE}/global-tasks", json={"template_name": "GRE Exam"}).json()
    assert created["due_date"] == "2026-07-14"
    assert created["linked_program_id"] == "school_1"

    completed = client.post(f"{BASE}/global-tasks/{created['id']}/complete").json()
    assert completed["status"] == "completed"

    synced = client.post(f"{BASE}/checklist-sync", json={"item_ids": completed["sync_item_ids"]}).json()
    assert synced["ok"] is True
    assert sorted(synced["succeeded"]) == ["school_1", "school_2"]
    assert synced["failed"] == []

    targets = {t["program"]["id"]: t for t in client.get(f"{BASE}/programs").json()["targets"]}
    assert targets["school_1"]["progress"] == 17
    assert targets["school_2"]["progress"] == 0

    assert len(client.get(f"{BASE}/global-tasks").json()) == 1
    assert client.delete(f"{BASE}/global-tasks/{created['id']}").json()["status"] == "ok"
    assert client.get(f"{BASE}/global-tasks").json() == []


def test_global_task_requires_template(client):
    assert client.post(f"{BASE}/global-tasks", json={}).status_code == 400


def test_unknown_global_task_is_404(client):
    assert client.post(f"{BASE}/global-tasks/global_missing/complete").status_code == 404


def test_anonymous_session_uses_local_store(client):
    client.post("/tracker/anonymous/programs/2/save")
    assert client.get("/tracker/anonymous/programs").json()["saved"][0]["program"]["id"] == "school_2"
    assert client.get(f"{BASE}/programs").json()["saved"] == []


def test_storage_outage_is_503(catalog):
    engine = create_db_engine("sqlite://")  # no tables created
    broken = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    client = _make_client(catalog, broken)

    response = client.get(f"{BASE}/programs")

    assert response.status_code == 503
    engine.dispose()


def test_tasks_for_saved_program_is_409(client):
    client.post(f"{BASE}/programs/1/save")
    assert client.get(f"{BASE}/programs/1/tasks").status_code == 409


def test_patch_applies_everything_in_one_request(client):
    client.post(f"{BASE}/programs/1/target")
    response = client.patch(f"{BASE}/programs/1", json={
        "status": "interview_invite",
        "notes": "Zoom on the 4th",
        "documents": [{"id": "doc1", "name": "Resume.pdf", "document_type": "resume"}],
    })
    assert response.json()["ok"] is True

    view = client.get(f"{BASE}/programs/1").json()
    assert view["status"] == "interview_invite"
    assert view["documents"][0]["name"] == "Resume.pdf"
    assert view["lors"] == []


def test_requests_for_one_user_share_a_tracker(catalog, session_factory):
    registry = TrackerRegistry()
    client = _make_client(catalog, session_factory, registry=registry)

    client.post(f"{BASE}/programs/1/target")
    client.post(f"{BASE}/programs/2/save")
    client.get("/tracker/anonymous/programs")

    assert len(registry) == 2
    assert "user-123" in registry
    tracker = registry.get("user-123", lambda: pytest.fail("tracker was rebuilt"))
    assert {rel.program_id.school_id for rel in tracker.relationships.all()} == {1, 2}


def test_overlapping_toggles_keep_stored_progress_consistent(catalog, session_factory):
    local_store = LocalTrackerStore()
    client = _make_client(catalog, session_factory, local_store=local_store)
    client.post("/tracker/anonymous/programs/1/target")
    item_ids = ["c1", "c2", "c3", "c4", "c5", "c6"]
    responses = []

    def toggle(item_id):
        own_client = TestClient(client.app)
        responses.append(own_client.post(
            f"/tracker/anonymous/programs/1/checklist/{item_id}/toggle", json={"completed": True}))

    threads = [threading.Thread(target=toggle, args=(item_id,)) for item_id in item_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert [r.status_code for r in responses] == [200] * len(item_ids)
    stored = local_store.list_relationships_for_user("anonymous")[0]
    assert {i.id for i in stored.checklist if i.completed} == set(item_ids)
    assert stored.progress == calculate_progress(stored.checklist) == 50
    assert client.get("/tracker/anonymous/programs/1").json()["progress"] == 50
