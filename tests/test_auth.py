from urllib.parse import parse_qs, urlparse

import pytest

from clubhub.core.security import create_access_token, decode_token, hash_password, verify_password
from clubhub.services.auth import check_password_policy
from clubhub.services.errors import ValidationError


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


def test_password_hashing_roundtrip():
    h = hash_password("Secret123")
    assert verify_password("Secret123", h)
    assert not verify_password("secret123", h)
    assert not verify_password("Secret123", "not-a-bcrypt-hash")


def test_access_token_claims():
    claims = decode_token(create_access_token(user_id=5, role="admin"))
    assert claims["sub"] == "5"
    assert claims["role"] == "admin"
    assert claims["type"] == "access"
    assert claims["exp"] - claims["iat"] == 360 * 60


@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere", "A1a" * 50])
def test_password_policy_rejects(password):
    with pytest.raises(ValidationError):
        check_password_policy(password)


@pytest.mark.anyio
async def test_signup_verify_login_flow(async_client):
    r = await async_client.post(
        "/auth/signup",
        json={"name": "Huda", "email": "Huda@Example.com", "password": "Secret123", "confirm_password": "Secret123"},
    )
    assert r.status_code == 201, r.text
    verify_url = r.json()["verify_url"]

    r = await async_client.post("/auth/login", json={"email": "huda@example.com", "password": "Secret123"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Email not verified"

    params = _query(verify_url)
    r = await async_client.get("/auth/verify-email", params=params)
    assert r.status_code == 200

    r = await async_client.get("/auth/verify-email", params=params)
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid or already used token"

    r = await async_client.post("/auth/login", json={"email": "huda@example.com", "password": "Secret123"})
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["role"] == "member"
    assert body["user"]["is_email_verified"] is True

    me = await async_client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "huda@example.com"


@pytest.mark.anyio
async def test_signup_rejects_duplicates_and_weak_passwords(async_client, make_user):
    await make_user(email="taken@example.com")

    r = await async_client.post(
        "/auth/signup", json={"name": "X", "email": "taken@example.com", "password": "Secret123"}
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Email already in use"

    r = await async_client.post("/auth/signup", json={"name": "X", "email": "new@example.com", "password": "weak"})
    assert r.status_code == 400

    r = await async_client.post(
        "/auth/signup",
        json={"name": "X", "email": "new@example.com", "password": "Secret123", "confirm_password": "Other123"},
    )
    assert r.status_code == 422


@pytest.mark.anyio
async def test_login_failures(async_client, make_user):
    await make_user(email="member@example.com")
    await make_user(email="gone@example.com", is_active=False)

    r = await async_client.post("/auth/login", json={"email": "member@example.com", "password": "Wrong1234"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"

    r = await async_client.post("/auth/login", json={"email": "nobody@example.com", "password": "Secret123"})
    assert r.status_code == 401

    r = await async_client.post("/auth/login", json={"email": "gone@example.com", "password": "Secret123"})
    assert r.status_code == 403
    assert r.json()["detail"] == "Account is deactivated"


@pytest.mark.anyio
async def test_password_reset_flow(async_client, make_user):
    await make_user(email="reset@example.com")

    r = await async_client.post("/auth/password-reset-request", json={"email": "unknown@example.com"})
    assert r.status_code == 200
    assert "reset_url" not in r.json()

    r = await async_client.post("/auth/password-reset-request", json={"email": "reset@example.com"})
    assert r.status_code == 200
    params = _query(r.json()["reset_url"])

    r = await async_client.post(
        "/auth/password-reset",
        json={"token": "bogus", "email": "reset@example.com", "new_password": "Another123"},
    )
    assert r.status_code == 400

    r = await async_client.post(
        "/auth/password-reset",
        json={"token": params["token"], "email": params["email"], "new_password": "Another123"},
    )
    assert r.status_code == 200

    r = await async_client.post("/auth/login", json={"email": "reset@example.com", "password": "Another123"})
    assert r.status_code == 200


@pytest.mark.anyio
async def test_resend_verification(async_client, make_user):
    await make_user(email="pending@example.com", verified=False)
    await make_user(email="done@example.com")

    r = await async_client.post("/auth/resend-verification", json={"email": "done@example.com"})
    assert r.json()["message"] == "Email already verified"

    r = await async_client.post("/auth/resend-verification", json={"email": "pending@example.com"})
    assert r.json()["message"] == "Verification link sent"
    params = _query(r.json()["verify_url"])

    r = await async_client.get("/auth/verify-email", params=params)
    assert r.status_code == 200


@pytest.mark.anyio
async def test_change_password(async_client, make_user, headers_for):
    user = await make_user()

    r = await async_client.post(
        "/auth/change-password",
        json={"current_password": "Wrong", "new_password": "Better123", "confirm_new_password": "Better123"},
        headers=headers_for(user),
    )
    assert r.status_code == 400

    r = await async_client.post(
        "/auth/change-password",
        json={"current_password": "Secret123", "new_password": "Better123", "confirm_new_password": "Better123"},
        headers=headers_for(user),
    )
    assert r.status_code == 200


@pytest.mark.anyio
async def test_invalid_token_and_role_claims(async_client, make_user, headers_for):
    member = await make_user()

    r = await async_client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401

    r = await async_client.get("/admin/users", headers=headers_for(member))
    assert r.status_code == 403
