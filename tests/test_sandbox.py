from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from momentum.core.schema import BLOCKER_CATEGORIES
from momentum.sandbox import MANAGER_TOKEN, MEMBER_TOKEN

MANAGER = {"Authorization": f"Bearer {MANAGER_TOKEN}"}
MEMBER = {"Authorization": f"Bearer {MEMBER_TOKEN}"}


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def test_requests_without_valid_token_are_unauthorized(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid token"


def test_profile_uses_camel_case(client):
    body = client.get("/api/auth/me", headers=MANAGER).json()

    assert body["uid"] == "u-lead"
    assert body["firstName"] == "Ada"
    assert body["isManager"] is True


def test_refresh_rotates_token(client):
    grant = client.post("/api/auth/refresh", headers=MEMBER).json()

    assert grant["user"]["uid"] == "u-dev1"
    assert client.get("/api/auth/me", headers=MEMBER).status_code == 401
    fresh = {"Authorization": f"Bearer {grant['accessToken']}"}
    assert client.get("/api/auth/me", headers=fresh).status_code == 200


def test_profile_update_returns_user_and_rotated_token(client):
    response = client.patch("/api/team-members/u-dev1", json={"designation": "Staff Engineer"}, headers=MEMBER)

    assert response.status_code == 200
    grant = response.json()
    assert grant["user"]["designation"] == "Staff Engineer"
    assert grant["user"]["firstName"] == "Grace"
    assert client.get("/api/auth/me", headers=MEMBER).status_code == 401
    fresh = {"Authorization": f"Bearer {grant['accessToken']}"}
    assert client.get("/api/auth/me", headers=fresh).json()["designation"] == "Staff Engineer"
    roster = client.get("/api/team-members/team/core", headers=fresh).json()
    assert {m["uid"]: m["designation"] for m in roster}["u-dev1"] == "Staff Engineer"


def test_profile_update_is_self_service(client):
    other = client.patch("/api/team-members/u-dev1", json={"firstName": "Ada"}, headers=MANAGER)
    assert other.status_code == 403

    empty = client.patch("/api/team-members/u-lead", json={}, headers=MANAGER)
    assert empty.status_code == 422
    assert client.get("/api/auth/me", headers=MANAGER).status_code == 200


def test_landing_route_sends_no_cors_headers(client):
    response = client.get("/", headers={"Origin": "http://localhost:3000"})

    assert response.status_code == 200
    assert response.json()["message"] == "Momentum Reference API"
    assert "access-control-allow-origin" not in response.headers


def test_team_blockers_filter_and_paginate(client):
    everything = client.get("/api/blockers/team/core", headers=MANAGER).json()
    assert everything["total"] == 5
    assert [b["uid"] for b in everything["blockers"]][:2] == ["blk-seed-1", "blk-seed-3"]

    high = client.get("/api/blockers/team/core", params={"severity": "High"}, headers=MANAGER).json()
    assert {b["uid"] for b in high["blockers"]} == {"blk-seed-1", "blk-seed-4"}

    second_page = client.get("/api/blockers/team/core", params={"limit": 2, "page": 2}, headers=MANAGER).json()
    assert second_page["total"] == 5
    assert len(second_page["blockers"]) == 2

    assert client.get("/api/blockers/team/core", params={"severity": "Urgent"}, headers=MANAGER).status_code == 422


def test_team_stats_include_zero_filled_keys_and_trend(client):
    stats = client.get("/api/blockers/team/core/stats", headers=MANAGER).json()

    assert stats["total"] == 5
    assert set(stats["byCategory"]) == set(BLOCKER_CATEGORIES)
    assert stats["byStatus"] == {"Open": 3, "Resolved": 1, "Ignored": 1}
    assert stats["weeklyTrend"] == [
        {"week": "2026-W08", "count": 0},
        {"week": "2026-W09", "count": 1},
        {"week": "2026-W10", "count": 2},
        {"week": "2026-W11", "count": 2},
    ]


def test_members_cannot_read_team_views(client):
    assert client.get("/api/blockers/team/core", headers=MEMBER).status_code == 403
    assert client.get("/api/blockers/member/u-dev2", headers=MEMBER).status_code == 403
    assert client.get("/api/blockers/member/u-dev1", headers=MEMBER).status_code == 200


def test_status_transitions_are_enforced(client):
    resolved = client.patch("/api/blockers/blk-seed-1", json={"status": "Resolved"}, headers=MANAGER)
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "Resolved"

    reopened = client.patch("/api/blockers/blk-seed-1", json={"status": "Open"}, headers=MANAGER)
    assert reopened.status_code == 409
    assert reopened.json()["detail"] == "cannot move blocker from Resolved to Open"

    assert client.patch("/api/blockers/blk-missing", json={"status": "Open"}, headers=MANAGER).status_code == 404


def test_create_blocker(client):
    created = client.post(
        "/api/blockers",
        json={"description": "Flaky e2e tests", "category": "Technical", "severity": "Low"},
        headers=MEMBER,
    )
    assert created.status_code == 201
    assert created.json()["teamMember"] == "u-dev1"

    blank = client.post("/api/blockers", json={"description": "   "}, headers=MEMBER)
    assert blank.status_code == 422


def test_generation_is_idempotent_per_window(client):
    first = client.post("/api/ai-reports/generate/team/core", headers=MANAGER).json()
    second = client.post("/api/ai-reports/generate/team/core", headers=MANAGER).json()
    monthly = client.post("/api/ai-reports/generate/team/core", params={"period": "monthly"}, headers=MANAGER).json()

    assert first["isExisting"] is False
    assert second["isExisting"] is True
    assert second["uid"] == first["uid"]
    assert monthly["uid"] != first["uid"]
    assert first["summary"].startswith("2 new blocker(s) this week; 3 open")
    assert [item["blockerRef"] for item in first["actionItems"]] == ["blk-seed-4", "blk-seed-1", "blk-seed-3"]

    listed = client.get("/api/ai-reports/team/core", headers=MANAGER).json()
    assert [r["uid"] for r in listed] == [monthly["uid"], first["uid"]]
    assert client.get(f"/api/ai-reports/{first['uid']}", headers=MANAGER).json()["isExisting"] is False


def test_unknown_report_is_not_found(client):
    assert client.get("/api/ai-reports/rpt-missing", headers=MANAGER).status_code == 404
