from app.core.exceptions import humanize_validation_error
from helpers import PASSWORD


async def test_invalid_email_uses_error_envelope(client):
    resp = await client.post("/auth/signup", json={"email": "not-an-email", "password": PASSWORD})
    assert resp.status_code == 400
    assert resp.json() == {
        "statusCode": 400,
        "message": ["email must be an email"],
        "error": "Bad Request",
    }


async def test_short_password_message(client):
    resp = await client.post("/auth/signup", json={"email": "ok@example.com", "password": "x"})
    assert resp.status_code == 400
    [message] = resp.json()["message"]
    assert message.startswith("password must be longer than or equal to")


async def test_missing_fields_are_listed(client):
    resp = await client.post("/auth/login", json={})
    messages = resp.json()["message"]
    assert "email should not be empty" in messages
    assert "password should not be empty" in messages


def test_humanize_falls_back_to_pydantic_message():
    error = {"loc": ("body", "items", 0, "id"), "type": "something_new", "msg": "went wrong"}
    assert humanize_validation_error(error) == "items.0.id went wrong"


async def test_multibyte_password_over_bcrypt_limit_is_rejected(client):
    resp = await client.post("/auth/signup", json={"email": "mb@example.com", "password": "é" * 40})
    assert resp.status_code == 400
    assert resp.json()["message"] == ["password must be shorter than or equal to 72 bytes"]


async def test_multibyte_password_within_limit_is_accepted(client):
    resp = await client.post("/auth/signup", json={"email": "mb@example.com", "password": "é" * 36})
    assert resp.status_code == 201, resp.text
