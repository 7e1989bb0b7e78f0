from datetime import timedelta

from sqlalchemy import func, select

from app.db.models.database import Session, User
from app.libs.formats.datetime import now
from helpers import PASSWORD, bearer, create_user, login


async def test_signup_returns_public_user(client):
    """
    Signup answers with the public user shape, never the password hash
    """
    resp = await client.post(
        "/auth/signup",
        json={"email": "New@Example.com", "password": PASSWORD, "name": "Nora"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "new@example.com"
    assert body["role"] == "TRAINEE"
    assert "passwordHash" not in body and "password_hash" not in body


async def test_duplicate_signup_is_409_and_creates_no_row(client, db):
    await create_user(db, "dup@example.com")

    resp = await client.post("/auth/signup", json={"email": "dup@example.com", "password": PASSWORD})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Email is already registered"

    count = await db.scalar(
        select(func.count()).select_from(User).where(User.email == "dup@example.com")
    )
    assert count == 1


async def test_login_wrong_password_is_403(client, db):
    await create_user(db, "a@example.com")
    resp = await client.post("/auth/login", json={"email": "a@example.com", "password": "nope-nope"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Invalid credentials"


async def test_login_then_me(client, db):
    await create_user(db, "me@example.com")
    tokens = await login(client, "me@example.com")
    assert tokens["user"]["email"] == "me@example.com"
    assert tokens["user"]["loginCount"] == 1

    resp = await client.get("/auth/me", headers=bearer(tokens))
    assert resp.status_code == 200
    assert resp.json()["isLoggedIn"] is True


async def test_me_without_token_is_401(client):
    resp = await client.get("/auth/me")
    assert resp.status_code == 401


async def test_logout_invalidates_access_and_refresh(client, db):
    """
    After logout both the old access token and the old refresh token are rejected
    """
    await create_user(db, "out@example.com")
    tokens = await login(client, "out@example.com")

    resp = await client.post(
        "/auth/logout", headers=bearer(tokens), json={"refreshToken": tokens["refreshToken"]}
    )
    assert resp.status_code == 200
    assert resp.json() == {"message": "Logged out successfully"}

    assert (await client.get("/auth/me", headers=bearer(tokens))).status_code == 401
    refreshed = await client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert refreshed.status_code == 401

    user = await db.scalar(select(User).where(User.email == "out@example.com"))
    await db.refresh(user)
    assert user.is_logged_in is False


async def test_logout_with_foreign_refresh_token_is_401(client, db):
    await create_user(db, "one@example.com")
    await create_user(db, "two@example.com")
    first = await login(client, "one@example.com")
    second = await login(client, "two@example.com")

    resp = await client.post(
        "/auth/logout", headers=bearer(first), json={"refreshToken": second["refreshToken"]}
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Token/user mismatch"


async def test_refresh_rotates_and_rejects_previous_token(client, db):
    await create_user(db, "rot@example.com")
    tokens = await login(client, "rot@example.com")

    resp = await client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 200
    rotated = resp.json()
    assert rotated["refreshToken"] != tokens["refreshToken"]
    assert (await client.get("/auth/me", headers=bearer(rotated))).status_code == 200

    stale = await client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert stale.status_code == 401


async def test_refresh_on_expired_session_is_401(client, db):
    await create_user(db, "exp@example.com")
    tokens = await login(client, "exp@example.com")

    session = await db.scalar(select(Session))
    session.refresh_token_exp = now() - timedelta(minutes=1)
    await db.commit()

    resp = await client.post("/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 401
    assert "accessToken" not in resp.json()


async def test_refresh_with_garbage_token_is_401(client):
    resp = await client.post("/auth/refresh", json={"refreshToken": "not-a-jwt"})
    assert resp.status_code == 401


async def test_change_password_drops_sessions(client, db):
    await create_user(db, "chg@example.com")
    tokens = await login(client, "chg@example.com")

    wrong = await client.post(
        "/auth/change-password",
        headers=bearer(tokens),
        json={"currentPassword": "bad-password", "newPassword": "another-pass-2"},
    )
    assert wrong.status_code == 403

    ok = await client.post(
        "/auth/change-password",
        headers=bearer(tokens),
        json={"currentPassword": PASSWORD, "newPassword": "another-pass-2"},
    )
    assert ok.status_code == 200
    assert (await client.get("/auth/me", headers=bearer(tokens))).status_code == 401
    await login(client, "chg@example.com", "another-pass-2")


async def test_forgot_and_reset_password(client, db, fakes):
    await create_user(db, "reset@example.com")

    missing = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})
    assert missing.status_code == 404

    resp = await client.post("/auth/forgot-password", json={"email": "reset@example.com"})
    assert resp.status_code == 200
    kind, email, _, link = fakes.mailer.sent[-1]
    assert (kind, email) == ("reset", "reset@example.com")
    assert "/reset-password?" in link
    token = link.split("token=")[1]

    bad = await client.post(
        "/auth/reset-password",
        json={"email": "reset@example.com", "token": "wrong", "password": "brand-new-pass"},
    )
    assert bad.status_code == 400

    good = await client.post(
        "/auth/reset-password",
        json={"email": "reset@example.com", "token": token, "password": "brand-new-pass"},
    )
    assert good.status_code == 200
    await login(client, "reset@example.com", "brand-new-pass")


async def test_avatar_upload_and_delete(client, db):
    await create_user(db, "pic@example.com")
    tokens = await login(client, "pic@example.com")

    bad = await client.post(
        "/auth/avatar",
        headers=bearer(tokens),
        files={"avatar": ("a.txt", b"hello", "text/plain")},
    )
    assert bad.status_code == 400

    resp = await client.post(
        "/auth/avatar",
        headers=bearer(tokens),
        files={"avatar": ("a.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
    )
    assert resp.status_code == 200
    assert resp.json()["avatarUrl"].startswith("/uploads/avatars/")

    cleared = await client.delete("/auth/avatar", headers=bearer(tokens))
    assert cleared.status_code == 200
    assert cleared.json()["avatarUrl"] is None
