from app.core.security import SecurityService
from app.db.models.database import Course, User

PASSWORD = "secret-pass-1"


async def create_user(db, email, role="TRAINEE", password=PASSWORD, **extra) -> User:
    user = User(
        email=email,
        password_hash=await SecurityService().hash_password(password),
        role=role,
        name=extra.pop("name", email.split("@")[0]),
        is_active=True,
        **extra,
    )
    db.add(user)
    await db.commit()
    return user


async def create_course(db, instructor_id, slug, position, **extra) -> Course:
    course = Course(
        title=extra.pop("title", slug.replace("-", " ").title()),
        slug=slug,
        instructor_id=instructor_id,
        position=position,
        is_published=extra.pop("is_published", True),
        **extra,
    )
    db.add(course)
    await db.commit()
    return course


async def login(client, email, password=PASSWORD) -> dict:
    resp = await client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['accessToken']}"}
