from sqlalchemy import func, select

from app.db.models.database import Category, Enrollment, User
from helpers import bearer, create_course, create_user, login


async def _admin_tokens(client, db):
    await create_user(db, "admin@example.com", role="ADMIN")
    return await login(client, "admin@example.com")


async def test_trainee_cannot_manage(client, db):
    await create_user(db, "s@example.com")
    tokens = await login(client, "s@example.com")

    for method, path in (
        ("GET", "/management/users"),
        ("GET", "/management/courses"),
        ("GET", "/management/categories"),
    ):
        resp = await client.request(method, path, headers=bearer(tokens))
        assert resp.status_code == 403, path


async def test_instructor_cannot_manage(client, db):
    await create_user(db, "t@example.com", role="INSTRUCTOR")
    tokens = await login(client, "t@example.com")
    resp = await client.patch("/management/users/1/role", headers=bearer(tokens), json={"role": "ADMIN"})
    assert resp.status_code == 403


async def test_list_users_paginated_and_filtered(client, db):
    tokens = await _admin_tokens(client, db)
    for i in range(3):
        await create_user(db, f"learner{i}@example.com")
    await create_user(db, "teach@example.com", role="INSTRUCTOR")

    resp = await client.get("/management/users", headers=bearer(tokens), params={"size": 2, "page": 1})
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 5
    assert len(page["items"]) == 2

    only_instructors = await client.get(
        "/management/users", headers=bearer(tokens), params={"role": "instructor"}
    )
    assert [u["email"] for u in only_instructors.json()["items"]] == ["teach@example.com"]

    searched = await client.get(
        "/management/users", headers=bearer(tokens), params={"search": "LEARNER1"}
    )
    assert [u["email"] for u in searched.json()["items"]] == ["learner1@example.com"]


async def test_set_role(client, db):
    tokens = await _admin_tokens(client, db)
    user = await create_user(db, "promote@example.com")

    resp = await client.patch(
        f"/management/users/{user.id}/role", headers=bearer(tokens), json={"role": "INSTRUCTOR"}
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "INSTRUCTOR"

    invalid = await client.patch(
        f"/management/users/{user.id}/role", headers=bearer(tokens), json={"role": "OWNER"}
    )
    assert invalid.status_code == 400

    missing = await client.patch(
        "/management/users/9999/role", headers=bearer(tokens), json={"role": "TRAINEE"}
    )
    assert missing.status_code == 400
    assert missing.json()["detail"] == "User not found"


async def test_add_enrollment_is_idempotent(client, db):
    tokens = await _admin_tokens(client, db)
    user = await create_user(db, "learner@example.com")
    course = await create_course(db, None, "course", 1)
    url = f"/management/users/{user.id}/enrollments"

    first = await client.post(url, headers=bearer(tokens), json={"courseId": course.id})
    assert first.json()["alreadyEnrolled"] is False
    second = await client.post(url, headers=bearer(tokens), json={"courseId": course.id})
    assert second.json()["alreadyEnrolled"] is True
    assert second.json()["enrollmentId"] == first.json()["enrollmentId"]

    count = await db.scalar(select(func.count()).select_from(Enrollment))
    assert count == 1

    detail = await client.get(f"/management/users/{user.id}", headers=bearer(tokens))
    enrollments = detail.json()["enrollments"]
    assert enrollments[0]["course"]["slug"] == "course"
    assert enrollments[0]["enrollType"] == "RECORDED"

    courses = await client.get("/management/courses", headers=bearer(tokens))
    assert courses.json()[0]["enrollCount"] == 1


async def test_add_enrollment_unknown_course_is_400(client, db):
    tokens = await _admin_tokens(client, db)
    user = await create_user(db, "learner@example.com")
    resp = await client.post(
        f"/management/users/{user.id}/enrollments", headers=bearer(tokens), json={"courseId": 42}
    )
    assert resp.status_code == 400


async def test_remove_enrollment(client, db):
    tokens = await _admin_tokens(client, db)
    user = await create_user(db, "learner@example.com")
    course = await create_course(db, None, "course", 1)
    db.add(Enrollment(user_id=user.id, course_id=course.id))
    await db.commit()

    resp = await client.delete(
        f"/management/users/{user.id}/enrollments/{course.id}", headers=bearer(tokens)
    )
    assert resp.json() == {"ok": True, "removed": 1}

    again = await client.delete(
        f"/management/users/{user.id}/enrollments/{course.id}", headers=bearer(tokens)
    )
    assert again.json() == {"ok": True, "removed": 0}


async def test_delete_user(client, db):
    tokens = await _admin_tokens(client, db)
    victim = await create_user(db, "bye@example.com")
    await login(client, "bye@example.com")

    resp = await client.delete(f"/management/users/{victim.id}", headers=bearer(tokens))
    assert resp.json() == {"ok": True, "id": victim.id}
    gone = await db.scalar(select(func.count()).select_from(User).where(User.email == "bye@example.com"))
    assert gone == 0


async def test_category_crud_and_reorder(client, db):
    tokens = await _admin_tokens(client, db)
    first = (await client.post("/management/categories", headers=bearer(tokens), json={"name": "Web"})).json()
    second = (await client.post("/management/categories", headers=bearer(tokens), json={"name": "AI"})).json()
    assert (first["position"], second["position"]) == (1, 2)

    reordered = await client.patch(
        "/management/categories/reorder", headers=bearer(tokens), json={"ids": [second["id"], first["id"]]}
    )
    assert reordered.json() == {"ok": True}
    listing = (await client.get("/management/categories", headers=bearer(tokens))).json()
    assert [c["name"] for c in listing] == ["AI", "Web"]

    renamed = await client.patch(
        f"/management/categories/{first['id']}", headers=bearer(tokens), json={"name": "Web Dev"}
    )
    assert renamed.json()["slug"] == "web-dev"

    clash = await client.patch(
        f"/management/categories/{first['id']}", headers=bearer(tokens), json={"slug": "ai"}
    )
    assert clash.status_code == 409

    deleted = await client.delete(f"/management/categories/{second['id']}", headers=bearer(tokens))
    assert deleted.json() == {"ok": True}
    assert await db.scalar(select(func.count()).select_from(Category)) == 1

    missing = await client.delete(f"/management/categories/{second['id']}", headers=bearer(tokens))
    assert missing.status_code == 404
