"""HTTP tests for the wizard endpoints.

Tests cover:
- Step gating over HTTP (303 for page visits, {"redirect": ...} for ajax)
- Submissions (JSON and form-encoded), validation error envelope
- Session isolation between browsers
- The sample sign-up wizard from start to finish
"""

import pytest
from httpx import ASGITransport, AsyncClient

from formwizard.config import settings


@pytest.mark.api
@pytest.mark.asyncio
class TestStepGating:
    async def test_wizard_root_redirects_to_first_step(self, client):
        response = await client.get("/wizard")
        assert response.status_code == 303
        assert response.headers["location"] == "/wizard/a"

    async def test_skip_ahead_redirects(self, client):
        response = await client.get("/wizard/b")
        assert response.status_code == 303
        assert response.headers["location"] == "/wizard/a"

    async def test_skip_ahead_ajax_gets_redirect_pointer(self, client):
        response = await client.get("/wizard/b", headers={"X-Requested-With": "XMLHttpRequest"})
        assert response.status_code == 200
        assert response.json() == {"redirect": "/wizard/a"}

    async def test_unknown_step_redirects_to_watermark(self, client):
        response = await client.get("/wizard/nope")
        assert response.status_code == 303
        assert response.headers["location"] == "/wizard/a"

    async def test_session_cookie_issued(self, client):
        response = await client.get("/wizard/a")
        assert response.status_code == 200
        assert settings.session_cookie_name in response.cookies

    async def test_first_step_render_data(self, client):
        response = await client.get("/wizard/a")
        data = response.json()
        assert data["stepCurrent"] == "a"
        assert data["stepPosition"] == 0
        assert data["stepNext"] == "/wizard/b"
        assert data["stepPrev"] is None
        assert data["stepCurrentName"] == "Step A"
        assert [s["step"] for s in data["steps"]] == ["a", "b"]


@pytest.mark.api
@pytest.mark.asyncio
class TestSubmission:
    async def test_ajax_submission_returns_accumulated_fields(self, client, ajax_headers):
        response = await client.post("/wizard/a", json={"name": "X"}, headers=ajax_headers)
        assert response.status_code == 200
        assert response.json() == {"name": "X", "stepNext": "/wizard/b", "return": None}

        response = await client.get("/wizard/b")
        assert response.status_code == 200
        assert response.json()["fields"] == {"name": "X"}

    async def test_validation_errors_use_error_envelope(self, client, ajax_headers):
        response = await client.post("/wizard/a", json={"name": ""}, headers=ajax_headers)
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        assert error["details"] == {"fields": {"name": ["The name field is required."]}}

        # nothing was stored, so step b is still locked
        response = await client.get("/wizard/b")
        assert response.status_code == 303

    async def test_form_post_with_handler_field_redirects_to_next_step(self, client):
        response = await client.post("/wizard/a", data={"name": "X", "_handler": "onSave"})
        assert response.status_code == 303
        assert response.headers["location"] == "/wizard/b"

        response = await client.get("/wizard/b")
        assert response.json()["fields"] == {"name": "X"}

    async def test_qualified_handler_header(self, client):
        headers = {"X-Requested-With": "XMLHttpRequest", settings.handler_header: "wizard-form::onSave"}
        response = await client.post("/wizard/a", json={"name": "X"}, headers=headers)
        assert response.status_code == 200

    async def test_malformed_json_is_rejected(self, client, ajax_headers):
        response = await client.post(
            "/wizard/a",
            content=b"{not json",
            headers={**ajax_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "HTTP_400"

    async def test_submit_to_locked_step_redirects(self, client, ajax_headers):
        response = await client.post("/wizard/b", json={"email": "x@y.co"}, headers=ajax_headers)
        assert response.status_code == 200
        assert response.json() == {"redirect": "/wizard/a"}


@pytest.mark.api
@pytest.mark.asyncio
class TestFullFlow:
    async def test_two_step_wizard(self, client, ajax_headers):
        assert (await client.get("/wizard/b")).status_code == 303
        assert (await client.get("/wizard/a")).status_code == 200

        response = await client.post("/wizard/a", json={"name": "X"}, headers=ajax_headers)
        assert response.json()["stepNext"] == "/wizard/b"

        response = await client.get("/wizard/b")
        assert response.status_code == 200
        assert response.json()["stepValidated"] == 1

        response = await client.post("/wizard/b", json={"email": "bad"}, headers=ajax_headers)
        assert response.status_code == 422
        assert "email" in response.json()["error"]["details"]["fields"]

        response = await client.post("/wizard/b", json={"email": "x@y.co"}, headers=ajax_headers)
        assert response.status_code == 200
        assert response.json() == {"name": "X", "email": "x@y.co", "stepNext": None, "return": None}

        # final visit shows the answers, then the wizard starts over
        response = await client.get("/wizard/b")
        assert response.status_code == 200
        assert response.json()["fields"] == {"name": "X", "email": "x@y.co"}

        response = await client.get("/wizard/b")
        assert response.status_code == 303
        assert response.headers["location"] == "/wizard/a"

    async def test_sessions_are_isolated(self, client, test_app, ajax_headers):
        await client.post("/wizard/a", json={"name": "X"}, headers=ajax_headers)
        assert (await client.get("/wizard/b")).status_code == 200

        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as other:
            response = await other.get("/wizard/b")
            assert response.status_code == 303

    async def test_forged_session_cookie_is_replaced(self, test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(
            transport=transport,
            base_url="http://test",
            cookies={settings.session_cookie_name: "../../etc/passwd"},
        ) as forged:
            response = await forged.get("/wizard/a")
            assert response.status_code == 200
            assert response.cookies[settings.session_cookie_name] != "../../etc/passwd"


@pytest.mark.api
@pytest.mark.asyncio
class TestSignupWizard:
    async def _complete_account(self, client, ajax_headers, email="ana@example.com"):
        return await client.post(
            "/signup/account",
            json={"first_name": "Ana", "last_name": "Lee", "email": email},
            headers=ajax_headers,
        )

    async def test_account_step_derives_display_name(self, client, ajax_headers):
        response = await self._complete_account(client, ajax_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["display_name"] == "Ana Lee"
        assert data["stepNext"] == "/signup/profile"

    async def test_disposable_email_rejected(self, client, ajax_headers):
        response = await self._complete_account(client, ajax_headers, email="ana@mailinator.com")
        assert response.status_code == 422
        assert response.json()["error"]["details"]["fields"] == {
            "email": ["Please use a permanent email address."]
        }

    async def test_custom_required_message(self, client, ajax_headers):
        response = await client.post(
            "/signup/account", json={"first_name": "Ana", "last_name": "Lee"}, headers=ajax_headers
        )
        assert response.json()["error"]["details"]["fields"] == {
            "email": ["We need an email address to create your account."]
        }

    async def test_complete_signup(self, client, ajax_headers):
        confirm_headers = {**ajax_headers, settings.handler_header: "onConfirm"}

        await self._complete_account(client, ajax_headers)
        response = await client.post("/signup/profile", json={"age": 30}, headers=ajax_headers)
        assert response.status_code == 200

        response = await client.get("/signup/confirm")
        assert response.status_code == 200
        assert response.json()["prevValidationsData"]["display_name"] == "Ana Lee"

        response = await client.post("/signup/confirm", json={"terms": "no"}, headers=confirm_headers)
        assert response.status_code == 422

        response = await client.post("/signup/confirm", json={"terms": "yes"}, headers=confirm_headers)
        assert response.status_code == 200
        assert response.json()["return"] == {"summary": "Ana Lee <ana@example.com>"}
        assert response.json()["stepNext"] == "/signup/done"

        response = await client.get("/signup/done")
        assert response.status_code == 200
        assert response.json()["fields"]["summary"] == "Ana Lee <ana@example.com>"

        response = await client.get("/signup/confirm")
        assert response.status_code == 303
        assert response.headers["location"] == "/signup/account"


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_readiness(self, client):
        response = await client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["session_store"] == "ok"
