"""
End-to-end tests through the HTTP layer.

Run with: pytest tests/test_api.py -v
"""

from unittest.mock import patch

import pytest

from app.api.routes.auth import get_identity_verifier
from app.core.authorization import ENDPOINT_ROLES
from app.services.auth_service import ExternalIdentity
from main import app

API = "/api/v1"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def signup_body(email="a@x.com", **overrides):
    body = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": email,
        "password": "Secret1",
        "phone": "+201000000000",
    }
    body.update(overrides)
    return body


async def register(client, sink, email="a@x.com", **overrides):
    response = await client.post(f"{API}/auth/signup", json=signup_body(email, **overrides))
    assert response.status_code == 201, response.text
    response = await client.patch(
        f"{API}/auth/confirm-email", json={"email": email, "otp": sink.last.otp_code}
    )
    assert response.status_code == 200, response.text
    return response


async def login(client, email="a@x.com", password="Secret1"):
    response = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(token, scheme="Bearer"):
    return {"Authorization": f"{scheme} {token}"}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get(f"{API}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSignupFlow:
    """Signup, confirmation and login over HTTP."""

    @pytest.mark.asyncio
    async def test_signup_envelope(self, client, sink):
        response = await client.post(f"{API}/auth/signup", json=signup_body())

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User added successfully."
        assert body["data"]["verification_method"] == "otp"
        user = body["data"]["user"]
        assert user["email"] == "a@x.com"
        assert "password" not in user
        assert "password_history" not in user
        assert sink.last.recipient == "a@x.com"

    @pytest.mark.asyncio
    async def test_duplicate_signup(self, client):
        await client.post(f"{API}/auth/signup", json=signup_body())
        response = await client.post(f"{API}/auth/signup", json=signup_body())

        assert response.status_code == 409
        assert response.json()["message"] == "User already exists"

    @pytest.mark.asyncio
    async def test_validation_error_envelope(self, client):
        response = await client.post(f"{API}/auth/signup", json=signup_body(first_name="Al"))

        assert response.status_code == 400
        body = response.json()
        assert body["message"].startswith("first_name")
        assert "stack" in body

    @pytest.mark.asyncio
    async def test_login_requires_confirmation(self, client):
        await client.post(f"{API}/auth/signup", json=signup_body())
        response = await client.post(f"{API}/auth/login", json={"email": "a@x.com", "password": "Secret1"})

        assert response.status_code == 401
        assert response.json()["message"] == "User not found or Email not confirmed"

    @pytest.mark.asyncio
    async def test_full_flow(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.get(f"{API}/users/profile", headers=bearer(tokens["access_token"]))

        assert response.status_code == 200
        profile = response.json()["data"]["user"]
        assert profile["email"] == "a@x.com"
        assert profile["phone"] == "+201000000000"

    @pytest.mark.asyncio
    async def test_verify_email_link(self, client, sink):
        await client.post(f"{API}/auth/signup", json=signup_body(verification_method="token"))
        event = sink.last
        assert event.verification_url.startswith("http://testserver/api/v1/auth/verify-email?")

        response = await client.get(event.verification_url)
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Email Verified" in response.text

        again = await client.get(event.verification_url)
        assert again.status_code == 200
        assert "Verification Failed" in again.text

        await login(client)


class TestSessions:
    """Bearer handling, revocation and refresh."""

    @pytest.mark.asyncio
    async def test_missing_authorization(self, client):
        response = await client.get(f"{API}/users/profile")
        assert response.status_code == 401
        assert response.json()["message"] == "Authorization token missing"

    @pytest.mark.asyncio
    async def test_malformed_authorization(self, client):
        response = await client.get(f"{API}/users/profile", headers={"Authorization": "Bearer"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_role_hint_mismatch(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.get(f"{API}/users/profile", headers=bearer(tokens["access_token"], "admin"))
        assert response.status_code == 401

        response = await client.get(f"{API}/users/profile", headers=bearer(tokens["access_token"], "user"))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_logout_revokes_session(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.post(f"{API}/auth/logout", headers=bearer(tokens["access_token"]))
        assert response.status_code == 201

        response = await client.get(f"{API}/users/profile", headers=bearer(tokens["access_token"]))
        assert response.status_code == 401
        assert response.json()["message"] == "Token is revoked"

        # The refresh token shares the session id
        response = await client.post(f"{API}/auth/refresh-token", headers=bearer(tokens["refresh_token"]))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_refresh(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.post(f"{API}/auth/refresh-token", headers=bearer(tokens["refresh_token"]))
        assert response.status_code == 200
        fresh = response.json()["data"]

        response = await client.get(f"{API}/users/profile", headers=bearer(fresh["access_token"]))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_access_token_rejected_for_refresh(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.post(f"{API}/auth/refresh-token", headers=bearer(tokens["access_token"]))
        assert response.status_code == 401

        response = await client.get(f"{API}/users/profile", headers=bearer(tokens["refresh_token"]))
        assert response.status_code == 401


class TestSocialLogin:
    @pytest.mark.asyncio
    async def test_creates_account(self, client):
        class StubVerifier:
            async def verify(self, id_token):
                return ExternalIdentity(email="g@x.com", email_verified=True, given_name="Grace")

        app.dependency_overrides[get_identity_verifier] = lambda: StubVerifier()

        response = await client.post(f"{API}/auth/social-login", json={"id_token": "abc"})
        assert response.status_code == 200
        assert response.json()["message"] == "User created successfully"

        response = await client.post(f"{API}/auth/social-login", json={"id_token": "abc"})
        assert response.json()["message"] == "User logged in successfully"


class TestUserEndpoints:
    """Role gates and account management."""

    @pytest.mark.asyncio
    async def test_admin_only_endpoints_reject_members(self, client, sink):
        await register(client, sink)
        tokens = await login(client)
        me = (await client.get(f"{API}/users/profile", headers=bearer(tokens["access_token"]))).json()

        response = await client.patch(
            f"{API}/users/{me['data']['user']['id']}/unfreeze", headers=bearer(tokens["access_token"])
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Access denied"

    @pytest.mark.asyncio
    async def test_admin_freezes_unfreezes_and_deletes(self, client, sink):
        await register(client, sink, email="admin@x.com", role="admin")
        await register(client, sink, email="member@x.com")
        admin = await login(client, "admin@x.com")
        member = await login(client, "member@x.com")
        member_id = (
            await client.get(f"{API}/users/profile", headers=bearer(member["access_token"]))
        ).json()["data"]["user"]["id"]
        headers = bearer(admin["access_token"])

        assert (await client.delete(f"{API}/users/{member_id}/freeze", headers=headers)).status_code == 200
        # Frozen accounts cannot be deleted
        assert (await client.delete(f"{API}/users/{member_id}", headers=headers)).status_code == 401
        assert (await client.patch(f"{API}/users/{member_id}/unfreeze", headers=headers)).status_code == 200
        assert (await client.delete(f"{API}/users/{member_id}", headers=headers)).status_code == 200

        response = await client.get(f"{API}/users/profile", headers=bearer(member["access_token"]))
        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    def test_each_route_uses_its_own_role_gate(self):
        gated = {}
        for route in app.routes:
            if not getattr(route, "path", "").startswith(f"{API}/users/"):
                continue
            checks = [dep.call for dep in route.dependant.dependencies if hasattr(dep.call, "endpoint")]
            assert len(checks) == 1, route.name
            gated[route.name] = checks[0]

        assert gated["unfreeze_account"].endpoint == "unfreeze_account"
        assert gated["delete_account"].endpoint == "delete_account"
        assert gated["freeze_own_account"].endpoint == "freeze_account"
        for name, check in gated.items():
            assert check.allowed_roles == ENDPOINT_ROLES[check.endpoint]
            if name in ENDPOINT_ROLES:
                assert check.endpoint == name

    @pytest.mark.asyncio
    async def test_self_freeze(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.delete(f"{API}/users/freeze", headers=bearer(tokens["access_token"]))
        assert response.status_code == 200
        response = await client.delete(f"{API}/users/freeze", headers=bearer(tokens["access_token"]))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_password(self, client, sink):
        await register(client, sink)
        tokens = await login(client)
        headers = bearer(tokens["access_token"])

        response = await client.patch(
            f"{API}/users/password",
            json={"old_password": "Secret1", "password": "Secret1", "confirm_password": "Secret1"},
            headers=headers,
        )
        assert response.status_code == 400

        response = await client.patch(
            f"{API}/users/password",
            json={"old_password": "Secret1", "password": "NewSecret1", "confirm_password": "NewSecret1"},
            headers=headers,
        )
        assert response.status_code == 200
        await login(client, password="NewSecret1")

    @pytest.mark.asyncio
    async def test_profile_image_upload(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        with patch("app.services.storage_service._sniff_mime", return_value="image/png"):
            response = await client.patch(
                f"{API}/users/profile-image",
                files={"profile_image": ("me.png", PNG, "image/png")},
                headers=bearer(tokens["access_token"]),
            )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["profile_image"].startswith("uploads/profile/")

    @pytest.mark.asyncio
    async def test_profile_image_wrong_type(self, client, sink):
        await register(client, sink)
        tokens = await login(client)

        response = await client.patch(
            f"{API}/users/profile-image",
            files={"profile_image": ("doc.pdf", b"%PDF-1.4", "application/pdf")},
            headers=bearer(tokens["access_token"]),
        )
        assert response.status_code == 400


class TestPasswordResetOverHttp:
    @pytest.mark.asyncio
    async def test_reset_flow(self, client, sink):
        await register(client, sink)

        response = await client.patch(f"{API}/auth/forget-password", json={"email": "a@x.com"})
        assert response.status_code == 200

        response = await client.patch(
            f"{API}/auth/reset-password",
            json={"email": "a@x.com", "code": sink.last.otp_code, "password": "NewSecret1",
                  "confirm_password": "NewSecret1"},
        )
        assert response.status_code == 200
        await login(client, password="NewSecret1")

    @pytest.mark.asyncio
    async def test_reset_link_opens_form(self, client, sink):
        await register(client, sink)
        response = await client.patch(
            f"{API}/auth/forget-password", json={"email": "a@x.com", "verification_method": "token"}
        )
        assert response.status_code == 200
        link, token = sink.last.verification_url, sink.last.link_token
        assert link.startswith(f"http://testserver{API}/auth/reset-password?token=")

        response = await client.get(link)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert f'name="token" value="{token}"' in response.text
        assert f'data-action="{API}/auth/reset-password"' in response.text

        # Opening the page leaves the token usable
        response = await client.patch(
            f"{API}/auth/reset-password",
            json={"email": "a@x.com", "token": token, "password": "NewSecret1", "confirm_password": "NewSecret1"},
        )
        assert response.status_code == 200

        response = await client.get(link)
        assert response.status_code == 200
        assert "Verification Failed" in response.text
        assert 'name="token"' not in response.text

    @pytest.mark.asyncio
    async def test_reset_page_without_token(self, client):
        response = await client.get(f"{API}/auth/reset-password")
        assert response.status_code == 200
        assert "Verification Failed" in response.text

    @pytest.mark.asyncio
    async def test_mismatched_confirmation(self, client, sink):
        response = await client.patch(
            f"{API}/auth/reset-password",
            json={"email": "a@x.com", "code": "123456", "password": "NewSecret1", "confirm_password": "Other1"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_forget_password_rate_limited_per_email(self, client, sink):
        await register(client, sink)

        for _ in range(3):
            response = await client.patch(f"{API}/auth/forget-password", json={"email": "a@x.com"})
            assert response.status_code == 200

        response = await client.patch(f"{API}/auth/forget-password", json={"email": "a@x.com"})
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["message"].startswith("Too many requests")
