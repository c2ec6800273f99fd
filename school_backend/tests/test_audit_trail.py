"""
Audit trail tests.

Entries are written after the response is sent, so every test drains the
writer before reading the table back.
"""

import logging

import pytest
from sqlalchemy import select

from school_backend.app.core.context import RequestContext
from school_backend.app.core.dependencies import get_audit_writer
from school_backend.app.main import app
from school_backend.app.models.audit_log import AuditLog
from school_backend.app.services.audit import AuditAction, AuditTrail, build_entry


async def _entries(db_session, action=None):
    await app.state.audit_trail.drain()
    query = select(AuditLog).order_by(AuditLog.id)
    if action:
        query = query.where(AuditLog.action == action)
    result = await db_session.execute(query)
    return result.scalars().all()


@pytest.mark.asyncio
async def test_failed_login_is_audited_as_anonymous(client, db_session):
    response = await client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "wrong"},
        headers={"User-Agent": "pytest-agent"},
    )
    assert response.status_code == 401

    entries = await _entries(db_session, AuditAction.LOGIN_ATTEMPT)
    assert len(entries) == 1
    entry = entries[0]
    assert entry.status_code == 401
    assert entry.username == "anonymous"
    assert entry.user_id is None
    assert entry.method == "POST"
    assert entry.path == "/api/auth/login"
    assert entry.user_agent == "pytest-agent"
    assert entry.details == {"attempted_username": "admin"}


@pytest.mark.asyncio
async def test_successful_login_records_attempt_and_success(client, db_session, admin_token):
    attempts = await _entries(db_session, AuditAction.LOGIN_ATTEMPT)
    successes = await _entries(db_session, AuditAction.LOGIN_SUCCESS)

    assert [entry.status_code for entry in attempts] == [200]
    assert attempts[0].username == "admin"
    assert len(successes) == 1
    assert successes[0].user_id == attempts[0].user_id


@pytest.mark.asyncio
async def test_authenticated_action_records_final_status(client, db_session, admin_headers):
    response = await client.get("/api/admin/stats", headers=admin_headers)
    assert response.status_code == 200

    entries = await _entries(db_session, AuditAction.VIEW_STATS)
    assert len(entries) == 1
    assert entries[0].status_code == 200
    assert entries[0].username == "admin"


@pytest.mark.asyncio
async def test_denied_request_is_still_audited(client, db_session, staff_headers):
    response = await client.get("/api/admin/stats", headers=staff_headers)
    assert response.status_code == 403

    entries = await _entries(db_session, AuditAction.VIEW_STATS)
    assert len(entries) == 1
    assert entries[0].status_code == 403
    assert entries[0].username == "staffer"


@pytest.mark.asyncio
async def test_unauthenticated_request_is_audited_with_401(client, db_session):
    response = await client.get("/api/admin/audit-logs")
    assert response.status_code == 401

    entries = await _entries(db_session, AuditAction.VIEW_AUDIT_LOGS)
    assert [entry.status_code for entry in entries] == [401]


@pytest.mark.asyncio
async def test_unaudited_routes_leave_no_entry(client, db_session, admin_headers):
    before = len(await _entries(db_session))

    await client.get("/api/auth/me", headers=admin_headers)
    await client.get("/health")

    assert len(await _entries(db_session)) == before


@pytest.mark.asyncio
async def test_audit_log_query_filters_and_orders(client, db_session, admin_headers):
    await client.get("/api/admin/stats", headers=admin_headers)
    await client.get("/api/admin/stats", headers=admin_headers)
    await app.state.audit_trail.drain()

    response = await client.get(
        "/api/admin/audit-logs", params={"action": AuditAction.VIEW_STATS}, headers=admin_headers
    )
    assert response.status_code == 200
    logs = response.json()
    assert len(logs) == 2
    assert all(log["action"] == AuditAction.VIEW_STATS for log in logs)
    assert logs[0]["id"] > logs[1]["id"]

    response = await client.get("/api/admin/audit-logs", params={"limit": 1}, headers=admin_headers)
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_recent_activity_is_newest_first(client, db_session, admin_headers):
    await client.get("/api/admin/stats", headers=admin_headers)
    await app.state.audit_trail.drain()

    response = await client.get("/api/admin/recent-activity", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()[0]["action"] == AuditAction.VIEW_STATS


@pytest.mark.asyncio
async def test_write_failure_is_logged_not_raised(caplog, mocker):
    broken_factory = mocker.MagicMock(side_effect=RuntimeError("database is gone"))
    trail = AuditTrail(broken_factory)
    context = RequestContext(ip="10.0.0.1", user_agent="test", method="GET", path="/api/admin/stats")

    with caplog.at_level(logging.ERROR, logger="school_registry.audit"):
        trail.submit(build_entry(context, AuditAction.VIEW_STATS, 200))
        await trail.drain()

    assert "Audit log write failed" in caplog.text


@pytest.mark.asyncio
async def test_write_failure_does_not_change_the_response(client, admin_headers, mocker):
    mocker.patch.object(
        app.state.audit_trail, "session_factory", side_effect=RuntimeError("database is gone")
    )

    response = await client.get("/api/admin/stats", headers=admin_headers)
    await app.state.audit_trail.drain()

    assert response.status_code == 200


def test_audit_writer_dependency_returns_the_app_writer(mocker):
    request = mocker.Mock()
    request.app.state.audit_trail = app.state.audit_trail

    assert get_audit_writer(request) is app.state.audit_trail
    assert isinstance(get_audit_writer(request), AuditTrail)
