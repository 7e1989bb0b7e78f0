from datetime import timedelta

from sqlalchemy import func, select

from app.db.models.database import EmailVerificationSend, User
from app.libs.formats.datetime import now
from app.services.shares.email_verification import GENERIC_MESSAGE
from helpers import create_user


def _token_from(link: str) -> str:
    return link.split("token=")[1]


async def test_unknown_email_gets_generic_answer(client, fakes):
    resp = await client.post("/email-verification/request", json={"email": "nobody@example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"message": GENERIC_MESSAGE}
    assert fakes.mailer.sent == []


async def test_request_then_verify(client, db, fakes):
    await create_user(db, "v@example.com")

    resp = await client.post("/email-verification/request", json={"email": "v@example.com"})
    assert resp.status_code == 200
    kind, email, _, link = fakes.mailer.sent[-1]
    assert (kind, email) == ("verify", "v@example.com")
    assert "/verify-email?" in link

    bad = await client.post(
        "/email-verification/verify", json={"email": "v@example.com", "token": "wrong"}
    )
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid or expired token"

    ok = await client.post(
        "/email-verification/verify", json={"email": "v@example.com", "token": _token_from(link)}
    )
    assert ok.status_code == 200
    assert ok.json() == {"success": True}

    user = await db.scalar(select(User).where(User.email == "v@example.com"))
    await db.refresh(user)
    assert user.is_email_verified is True
    assert user.verification_token_hash is None


async def test_resend_inside_cooldown_is_429(client, db):
    await create_user(db, "cool@example.com")

    first = await client.post("/email-verification/request", json={"email": "cool@example.com"})
    assert first.status_code == 200
    second = await client.post("/email-verification/resend", json={"email": "cool@example.com"})
    assert second.status_code == 429


async def test_hourly_cap_is_429(client, db):
    user = await create_user(db, "cap@example.com")
    for minutes in (50, 40, 30, 20, 10):
        db.add(
            EmailVerificationSend(
                user_id=user.id, email=user.email, created_at=now() - timedelta(minutes=minutes)
            )
        )
    await db.commit()

    resp = await client.post("/email-verification/request", json={"email": "cap@example.com"})
    assert resp.status_code == 429
    count = await db.scalar(select(func.count()).select_from(EmailVerificationSend))
    assert count == 5


async def test_expired_token_is_rejected(client, db, fakes):
    await create_user(db, "late@example.com")
    await client.post("/email-verification/request", json={"email": "late@example.com"})
    token = _token_from(fakes.mailer.sent[-1][3])

    user = await db.scalar(select(User).where(User.email == "late@example.com"))
    await db.refresh(user)
    user.verification_token_expires_at = now() - timedelta(seconds=1)
    await db.commit()

    resp = await client.post(
        "/email-verification/verify", json={"email": "late@example.com", "token": token}
    )
    assert resp.status_code == 400


async def test_confirm_link(client, db, fakes):
    await create_user(db, "link@example.com")
    await client.post("/email-verification/request", json={"email": "link@example.com"})
    token = _token_from(fakes.mailer.sent[-1][3])

    missing = await client.get("/email-verification/confirm", params={"email": "link@example.com"})
    assert missing.status_code == 400

    wrong = await client.get(
        "/email-verification/confirm", params={"email": "link@example.com", "token": "nope"}
    )
    assert wrong.json() == {"success": False}

    ok = await client.get(
        "/email-verification/confirm", params={"email": "link@example.com", "token": token}
    )
    assert ok.json() == {"success": True}
