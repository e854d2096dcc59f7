"""Onboarding, session and workspace endpoint tests."""

import pytest
from httpx import AsyncClient

from app.auth.deps import get_record_store
from app.auth.jwt import create_access_token
from app.main import app
from app.store import Collection

from conftest import TEST_USER_ID


async def _open(client: AsyncClient, auth_headers) -> dict:
    resp = await client.post("/api/onboarding/sessions", headers=auth_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _url(state: dict, action: str = "") -> str:
    return f"/api/onboarding/sessions/{state['session_id']}{action}"


@pytest.mark.api
@pytest.mark.asyncio
class TestOnboardingEndpoints:

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.post("/api/onboarding/sessions")
        assert resp.status_code == 401

    async def test_rejects_garbage_token(self, client: AsyncClient):
        resp = await client.post(
            "/api/onboarding/sessions", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    async def test_no_workspace_fallback(self, client: AsyncClient, auth_headers):
        resp = await client.post("/api/onboarding/sessions", headers=auth_headers)
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "NO_WORKSPACE"
        assert "Log out and log back in" in error["message"]

    async def test_enter_reports_steps_and_locks(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=3)

        state = await _open(client, auth_headers)

        assert state["current_step"] == 3
        assert state["onboarding_step"] == 3
        assert state["workspace_status"] == "provisional"
        steps = {s["number"]: s for s in state["steps"]}
        assert steps[2]["is_completed"] and not steps[2]["is_locked"]
        assert steps[3]["is_current"]
        assert steps[4]["is_locked"]
        assert steps[8]["is_locked"]
        assert state["drafts"]["workspace"]["name"] == "Acme"

    async def test_re_entry_reuses_open_session(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=3)
        first = await _open(client, auth_headers)
        await client.post(_url(first, "/steps/1"), headers=auth_headers)

        for _ in range(20):
            state = await _open(client, auth_headers)

        assert state["session_id"] == first["session_id"]
        assert state["current_step"] == 3
        assert len(app.state.wizard_sessions) == 1

    async def test_get_and_leave_session(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme")
        state = await _open(client, auth_headers)

        resp = await client.get(_url(state), headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["session_id"] == state["session_id"]

        resp = await client.delete(_url(state), headers=auth_headers)
        assert resp.status_code == 204

        resp = await client.get(_url(state), headers=auth_headers)
        assert resp.status_code == 404

    async def test_session_is_scoped_to_its_owner(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme")
        state = await _open(client, auth_headers)
        await make_workspace(name="Other", user_id="someone-else")
        other_headers = {"Authorization": f"Bearer {create_access_token(user_id='someone-else')}"}

        resp = await client.get(_url(state), headers=other_headers)
        assert resp.status_code == 404

    async def test_draft_patch_then_save(self, client: AsyncClient, auth_headers, make_workspace, store):
        workspace = await make_workspace(name="")
        state = await _open(client, auth_headers)

        resp = await client.patch(
            _url(state, "/drafts/workspace"),
            json={"name": "Acme", "address": "1 Main St"},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["drafts"]["workspace"]["name"] == "Acme"

        resp = await client.post(_url(state, "/save"), headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["outcome"] == "success"
        assert body["message"] == "Workspace saved!"
        assert body["state"]["current_step"] == 2
        assert body["state"]["onboarding_step"] == 2

        saved = await store.read_one(Collection.WORKSPACE, workspace.id)
        assert saved["name"] == "Acme"
        assert saved["address"] == "1 Main St"

    async def test_bad_draft_value_is_422(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=4)
        state = await _open(client, auth_headers)

        resp = await client.patch(
            _url(state, "/drafts/service"), json={"duration": "long"}, headers=auth_headers
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_blank_name_is_rejected(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="")
        state = await _open(client, auth_headers)

        resp = await client.post(_url(state, "/save"), headers=auth_headers)

        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "STEP_REJECTED"
        assert error["message"] == "Business name is required"
        assert error["details"]["current_step"] == 1

    async def test_skip_refused_on_step_1(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme")
        state = await _open(client, auth_headers)

        resp = await client.post(_url(state, "/skip"), headers=auth_headers)
        assert resp.status_code == 422

    async def test_locked_step_click_is_noop(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=2)
        state = await _open(client, auth_headers)

        resp = await client.post(_url(state, "/steps/6"), headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["outcome"] == "noop"
        assert resp.json()["state"]["current_step"] == 2

    async def test_jump_back_to_reached_step(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=5)
        state = await _open(client, auth_headers)

        resp = await client.post(_url(state, "/steps/1"), headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["outcome"] == "success"
        assert resp.json()["state"]["current_step"] == 1

    async def test_activate_before_step_8_is_rejected(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=6)
        state = await _open(client, auth_headers)

        resp = await client.post(_url(state, "/activate"), headers=auth_headers)
        assert resp.status_code == 422

    async def test_full_flow_to_activation(self, client: AsyncClient, auth_headers, make_workspace, store):
        workspace = await make_workspace(name="")
        state = await _open(client, auth_headers)

        await client.patch(_url(state, "/drafts/workspace"), json={"name": "Acme"}, headers=auth_headers)
        assert (await client.post(_url(state, "/save"), headers=auth_headers)).status_code == 200
        for _ in range(2):
            assert (await client.post(_url(state, "/skip"), headers=auth_headers)).status_code == 200

        await client.patch(
            _url(state, "/drafts/service"), json={"name": "Consultation"}, headers=auth_headers
        )
        resp = await client.post(_url(state, "/save"), headers=auth_headers)
        assert resp.json()["message"] == "Service created!"

        for _ in range(3):
            resp = await client.post(_url(state, "/skip"), headers=auth_headers)
        assert resp.json()["state"]["current_step"] == 8
        assert resp.json()["state"]["onboarding_step"] == 8

        resp = await client.post(_url(state, "/activate"), headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["redirect_to"] == "/bookings"
        assert body["state"]["workspace_status"] == "active"

        saved = await store.read_one(Collection.WORKSPACE, workspace.id)
        assert saved["status"] == "active"
        assert saved["onboarding_step"] == 8

        # The wizard closes once the workspace is live
        resp = await client.get(_url(state), headers=auth_headers)
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestSessionEndpoints:

    async def test_session_without_profile(self, client: AsyncClient, auth_headers):
        resp = await client.get("/api/session", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == TEST_USER_ID
        assert data["loading"] is False
        assert data["profile"] is None
        assert data["workspace_id"] is None

    async def test_session_with_workspace(self, client: AsyncClient, auth_headers, make_workspace):
        workspace = await make_workspace(name="Acme", onboarding_step=4)

        resp = await client.get("/api/session", headers=auth_headers)

        data = resp.json()
        assert data["email"] == "owner@example.com"
        assert data["workspace_id"] == workspace.id
        assert data["workspace_status"] == "provisional"
        assert data["onboarding_step"] == 4
        assert data["profile"]["workspace"]["name"] == "Acme"

    async def test_refresh(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme", onboarding_step=2)

        resp = await client.post("/api/session/refresh", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.json()["onboarding_step"] == 2

    async def test_sign_out_closes_wizards(self, client: AsyncClient, auth_headers, make_workspace):
        await make_workspace(name="Acme")
        state = await _open(client, auth_headers)

        resp = await client.delete("/api/session", headers=auth_headers)
        assert resp.status_code == 204

        resp = await client.get(_url(state), headers=auth_headers)
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestWorkspaceEndpoints:

    async def test_sign_up_creates_provisional_workspace(self, client: AsyncClient, auth_headers):
        resp = await client.post(
            "/api/workspaces/",
            json={"business_name": "Acme Cleaning", "display_name": "Alex"},
            headers=auth_headers,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Acme Cleaning"
        assert data["slug"] == "acme-cleaning"
        assert data["status"] == "provisional"
        assert data["onboarding_step"] is None

        resp = await client.get("/api/workspaces/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == data["id"]

        # The new workspace opens the wizard at step 1
        state = await _open(client, auth_headers)
        assert state["current_step"] == 1

    async def test_second_sign_up_is_rejected(self, client: AsyncClient, auth_headers):
        body = {"business_name": "Acme"}
        assert (await client.post("/api/workspaces/", json=body, headers=auth_headers)).status_code == 201

        resp = await client.post("/api/workspaces/", json=body, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "User already belongs to a workspace"

    async def test_blank_business_name_is_422(self, client: AsyncClient, auth_headers):
        resp = await client.post(
            "/api/workspaces/", json={"business_name": "   "}, headers=auth_headers
        )
        assert resp.status_code == 422

    async def test_unknown_timezone_is_422(self, client: AsyncClient, auth_headers):
        resp = await client.post(
            "/api/workspaces/",
            json={"business_name": "Acme", "timezone": "Nowhere/City"},
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_my_workspace_without_one(self, client: AsyncClient, auth_headers):
        resp = await client.get("/api/workspaces/me", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NO_WORKSPACE"


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_readiness(self, client: AsyncClient):
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        assert resp.json()["checks"]["database"] == "ok"


@pytest.mark.api
@pytest.mark.asyncio
class TestWriteFailureResponses:

    async def test_failed_write_is_retryable_503(
        self, client: AsyncClient, auth_headers, make_workspace, store
    ):
        await make_workspace(name="Acme", onboarding_step=3)
        state = await _open(client, auth_headers)
        app.dependency_overrides[get_record_store] = lambda: store
        store.fail_next.append("update_fields")

        resp = await client.post(_url(state, "/skip"), headers=auth_headers)

        assert resp.status_code == 503
        error = resp.json()["error"]
        assert error["code"] == "WRITE_FAILED"
        assert error["details"] == {"retryable": True, "current_step": 3}

        resp = await client.get(_url(state), headers=auth_headers)
        assert resp.json()["current_step"] == 3
