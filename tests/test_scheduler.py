from datetime import timedelta

from sqlalchemy import func, select

from app.core.scheduler import cleanup_job
from app.db.models.database import EmailVerificationSend, Session
from app.libs.formats.datetime import now
from helpers import create_user


async def test_cleanup_removes_stale_rows(session_factory, db):
    user = await create_user(db, "old@example.com")
    current = now()
    db.add_all(
        [
            Session(user_id=user.id, refresh_token_hash="a", jti="1", refresh_token_exp=current + timedelta(days=1)),
            Session(user_id=user.id, refresh_token_hash="b", jti="2", refresh_token_exp=current - timedelta(days=1)),
            Session(
                user_id=user.id,
                refresh_token_hash="c",
                jti="3",
                refresh_token_exp=current + timedelta(days=1),
                revoked_at=current,
            ),
            EmailVerificationSend(user_id=user.id, email=user.email, created_at=current - timedelta(days=2)),
            EmailVerificationSend(user_id=user.id, email=user.email, created_at=current),
        ]
    )
    await db.commit()

    result = await cleanup_job(session_factory)
    assert result == {"sessions": 2, "sends": 1}

    assert await db.scalar(select(func.count()).select_from(Session)) == 1
    assert await db.scalar(select(func.count()).select_from(EmailVerificationSend)) == 1
