# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Integration tests for the route guard dependencies."""

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from src.api.deps import (
    get_db,
    get_permission_cache,
    require_all_permissions,
    require_any_role,
    require_role,
)
from src.main import authorization_error_handler
from src.services.authorization_gate import AuthorizationError


@pytest.fixture
def guarded_client(db_session, cache):
    """A minimal app with one route per guard."""
    app = FastAPI()
    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    @app.get("/support-only")
    def support_only(ctx=Depends(require_role("support"))):
        return {"user": ctx.username}

    @app.get("/staff")
    def staff(ctx=Depends(require_any_role(["TECHNICIAN", "SUPPORT"]))):
        return {"user": ctx.username}

    @app.get("/ticket-desk")
    def ticket_desk(
        ctx=Depends(require_all_permissions(["tickets:read", "tickets:update"])),
    ):
        return {"user": ctx.username}

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_permission_cache] = lambda: cache
    return TestClient(app)


def test_role_guard(guarded_client, seeded, service, make_user, auth_headers):
    user = make_user("desk")
    service.assign_role(user.id, service.get_role_by_name("SUPPORT").id)
    headers = auth_headers(user)

    assert guarded_client.get("/support-only", headers=headers).json() == {
        "user": "desk"
    }
    assert guarded_client.get("/staff", headers=headers).status_code == 200
    assert guarded_client.get("/ticket-desk", headers=headers).status_code == 200


def test_role_guard_rejects(guarded_client, viewer_user, auth_headers):
    response = guarded_client.get("/support-only", headers=auth_headers(viewer_user))

    assert response.status_code == 403
    assert response.json() == {
        "error": "Role required: SUPPORT",
        "code": "ROLE_REQUIRED",
        "required": ["SUPPORT"],
        "userRoles": ["VIEWER"],
    }


def test_all_permissions_guard_reports_missing(
    guarded_client, viewer_user, auth_headers
):
    response = guarded_client.get("/ticket-desk", headers=auth_headers(viewer_user))

    assert response.status_code == 403
    assert response.json()["missing"] == ["tickets:update"]

