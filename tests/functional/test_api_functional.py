"""Functional tests for the HTTP API.

The API runs under `TestClient` with a `ChecklistService` wired to the
in-process reference store, so every request exercises the full path from
route to store and back.
"""

from __future__ import annotations

import csv
import io

import httpx
import pytest
from fastapi.testclient import TestClient

from fleetcheck.client.store_client import ChecklistStoreClient
from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.main import API_PREFIX, create_app

COMPLETE_5DAY = {
    "nav_radar": "yes",
    "nav_ecdis": "yes",
    "nav_passage_plan": "2025-02-28",
    "port_eta_notice": {"response": "yes", "remarks": "sent 26 Feb"},
}


@pytest.fixture
def api(service):
    with TestClient(create_app(service=service)) as client:
        yield client


def _url(path: str) -> str:
    return f"{API_PREFIX}{path}"


def _open(api, voyage_id="V1"):
    resp = api.post(_url(f"/voyages/{voyage_id}/session"), json={"vessel_name": "MV Aurora", "user_id": "master"})
    assert resp.status_code == 200, resp.text
    return resp.json()


def _stub_api(handler):
    client = ChecklistStoreClient("http://store.test", timeout=1.0, transport=httpx.MockTransport(handler))
    return TestClient(create_app(service=ChecklistService(client)))


def _assert_problem(resp, status):
    assert resp.status_code == status, resp.text
    assert resp.headers["content-type"].startswith("application/problem+json")
    return resp.json()


# -----------------------------
# Templates
# -----------------------------

def test_list_templates_returns_summaries(api):
    """Verifies template summaries are listed without their documents."""
    resp = api.get(_url("/templates"))

    assert resp.status_code == 200
    templates = resp.json()["templates"]
    assert [t["template_id"] for t in templates] == ["tpl-5day", "tpl-crew"]
    assert all("template_data" not in t for t in templates)


def test_get_template_returns_normalized_items(api):
    """Verifies the normalized template with its parallel arrays."""
    body = api.get(_url("/templates/tpl-crew")).json()

    assert [i["item_id"] for i in body["items"]] == ["crew_count", "crew_list", "crew_medical"]
    assert body["item_types"] == ["text", "table", "yes_no_na"]
    assert body["is_mandatory"] == [True, False, True]
    assert (body["total_items"], body["mandatory_items"]) == (3, 2)


def test_unknown_template_is_problem_404(api):
    """Verifies store 404s surface as problem+json."""
    body = _assert_problem(api.get(_url("/templates/missing")), 404)

    assert body["code"] == "CHECKLIST_NOT_FOUND"
    assert body["retryable"] is False


# -----------------------------
# Sessions, saves and submits
# -----------------------------

def test_session_opens_preferred_checklist(api):
    """Verifies the session view payload."""
    body = _open(api)

    assert body["checklist"]["template_id"] == "tpl-5day"
    assert body["checklist"]["status"] == "draft"
    assert "template_data" not in body["checklist"]
    assert body["mode"] == "edit"
    assert body["progress"]["percentage"] == 0
    assert [r["values"]["response"] for r in body["tables"]["bio_declaration"]] == ["Yes", "Yes"]


def test_session_body_is_optional(api):
    """Verifies a session can be opened with no request body."""
    resp = api.post(_url("/voyages/V7/session"))

    assert resp.status_code == 200
    assert resp.json()["checklist"]["vessel_name"] == "Unknown Vessel"


def test_voyage_listing_and_create(api):
    """Verifies listing a voyage and creating a checklist from a template."""
    assert api.get(_url("/voyages/V5/checklists")).json() == {"voyage_id": "V5", "checklists": []}

    resp = api.post(_url("/voyages/V5/checklists"), json={"template_id": "tpl-crew", "vessel_name": "MV Borealis"})

    assert resp.status_code == 201
    listed = api.get(_url("/voyages/V5/checklists")).json()["checklists"]
    assert [c["template_id"] for c in listed] == ["tpl-crew"]
    _assert_problem(api.post(_url("/voyages/V5/checklists"), json={"template_id": "tpl-crew"}), 409)


def test_save_then_view_reflects_progress(api):
    """Verifies a manual save and the recomputed checklist view."""
    cid = _open(api)["checklist"]["checklist_id"]

    resp = api.put(_url(f"/checklists/{cid}/responses"), json={"answers": {"nav_radar": "yes", "nav_ecdis": "no"}})

    assert resp.status_code == 200
    saved = resp.json()
    assert saved["saved"] is True
    assert saved["checklist"]["progress_percentage"] == 33
    view = api.get(_url(f"/checklists/{cid}")).json()
    assert view["answers"]["nav_ecdis"]["response"] == "No"
    assert view["checklist"]["status"] == "in_progress"


def test_invalid_answer_is_problem_422(api):
    """Verifies a bad yes/no value names the offending item."""
    cid = _open(api)["checklist"]["checklist_id"]

    body = _assert_problem(api.put(_url(f"/checklists/{cid}/responses"), json={"answers": {"nav_radar": "maybe"}}), 422)

    assert body["item_id"] == "nav_radar"
    assert body["code"] == "CHECKLIST_VALIDATION_FAILED"


def test_unknown_request_fields_are_rejected(api):
    """Verifies request bodies are validated strictly."""
    body = _assert_problem(api.put(_url("/checklists/any/responses"), json={"answers": {}, "force": True}), 422)

    assert body["title"] == "Invalid Request"
    assert body["errors"]


def test_incomplete_submit_lists_missing_items(api):
    """Verifies submission gating reports every missing mandatory item."""
    cid = _open(api)["checklist"]["checklist_id"]

    body = _assert_problem(api.post(_url(f"/checklists/{cid}/submit"), json={"answers": {"nav_radar": "yes"}}), 422)

    assert body["title"] == "Checklist Incomplete"
    assert sorted(m["item_id"] for m in body["missing_items"]) == ["nav_ecdis", "nav_passage_plan", "port_eta_notice"]


def test_submit_and_resubmit(api):
    """Verifies submit, then a repeated submit reported as already submitted."""
    cid = _open(api)["checklist"]["checklist_id"]

    first = api.post(_url(f"/checklists/{cid}/submit"), json={"answers": COMPLETE_5DAY, "user_id": "master"})
    second = api.post(_url(f"/checklists/{cid}/submit"), json={"answers": COMPLETE_5DAY, "user_id": "chief"})

    assert first.status_code == 200, first.text
    assert first.json()["status"] == "submitted"
    assert first.json()["already_submitted"] is False
    assert second.status_code == 200
    assert second.json()["already_submitted"] is True
    assert second.json()["submitted_by"] == "master"

    view = api.get(_url(f"/checklists/{cid}")).json()
    assert view["mode"] == "view"


def test_resubmit_without_overwrite_is_conflict(api):
    """Verifies the per-request overwrite switch."""
    cid = _open(api)["checklist"]["checklist_id"]
    api.post(_url(f"/checklists/{cid}/submit"), json={"answers": COMPLETE_5DAY, "user_id": "master"})

    resp = api.post(_url(f"/checklists/{cid}/submit"), json={"answers": COMPLETE_5DAY, "allow_overwrite": False})

    _assert_problem(resp, 409)


def test_delete_checklist(api):
    """Verifies delete answers 204 and the checklist is gone afterwards."""
    cid = _open(api)["checklist"]["checklist_id"]

    assert api.delete(_url(f"/checklists/{cid}")).status_code == 204
    _assert_problem(api.get(_url(f"/checklists/{cid}")), 404)


# -----------------------------
# Request ids
# -----------------------------

def test_request_id_is_echoed_and_forwarded(api, transport):
    """Verifies an inbound X-Request-Id is echoed and sent on store calls."""
    transport.reset()

    resp = api.get(_url("/templates"), headers={"X-Request-Id": "req-abc"})

    assert resp.headers["X-Request-Id"] == "req-abc"
    assert transport.requests
    assert all(r.headers.get("X-Request-Id") == "req-abc" for r in transport.requests)


def test_request_id_is_generated_when_absent(api):
    """Verifies every response carries a request id."""
    first = api.get(_url("/templates")).headers.get("X-Request-Id")
    second = api.get(_url("/templates")).headers.get("X-Request-Id")

    assert first and second and first != second


# -----------------------------
# Reports and health
# -----------------------------

def test_csv_export(api):
    """Verifies the CSV attachment for a voyage."""
    _open(api)

    resp = api.get(_url("/voyages/V1/checklists/export"))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.headers["content-disposition"].startswith('attachment; filename="checklists_V1_')
    rows = list(csv.reader(io.StringIO(resp.text)))
    assert rows[0][:3] == ["Checklist ID", "Vessel Name", "Template Name"]
    assert sorted(r[2] for r in rows[1:]) == ["5-Day Pre-Arrival Checklist", "Crew Document Checklist"]


def test_csv_export_of_empty_voyage_is_404(api):
    """Verifies an export with nothing to export is a problem response."""
    _assert_problem(api.get(_url("/voyages/NONE/checklists/export")), 404)


def test_fleet_summary(api):
    """Verifies aggregate counts over several voyages."""
    _open(api, "V1")
    cid = _open(api, "V2")["checklist"]["checklist_id"]
    api.post(_url(f"/checklists/{cid}/submit"), json={"answers": COMPLETE_5DAY, "user_id": "master"})

    body = api.get(_url("/fleet/summary"), params=[("voyage_id", "V1"), ("voyage_id", "V2"), ("voyage_id", "V3")]).json()

    assert body["total_voyages"] == 3
    assert body["voyages_with_checklists"] == 2
    assert body["total_checklists"] == 4
    assert body["completed_checklists"] == 1
    assert body["completion_rate"] == 25


def test_health_reports_store_reachability(api):
    """Verifies health is ok while the store answers."""
    assert api.get(_url("/health")).json() == {"status": "ok", "store": True}


def test_health_degraded_when_store_fails():
    """Verifies health degrades rather than failing when the store is down."""
    with _stub_api(lambda request: httpx.Response(503, json={"detail": "down"})) as client:
        assert client.get(_url("/health")).json() == {"status": "degraded", "store": False}


def test_store_timeout_is_problem_504():
    """Verifies a store timeout maps to a retryable 504."""

    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with _stub_api(handler) as client:
        body = _assert_problem(client.get(_url("/templates")), 504)

    assert body["retryable"] is True
    assert body["code"] == "STORE_TIMEOUT"
