from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

_VALIDATION_REASONS = {
    "missing": "should not be empty",
    "value_error": "is invalid",
    "string_too_short": "is too short",
    "string_too_long": "is too long",
    "int_parsing": "must be an integer number",
    "int_type": "must be an integer number",
    "float_parsing": "must be a number",
    "bool_parsing": "must be a boolean value",
    "enum": "must be one of the allowed values",
    "literal_error": "must be one of the allowed values",
    "datetime_parsing": "must be a valid ISO 8601 date string",
    "datetime_from_date_parsing": "must be a valid ISO 8601 date string",
    "greater_than_equal": "is too small",
    "less_than_equal": "is too large",
    "list_type": "must be an array",
    "json_invalid": "must be valid JSON",
}


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "body"


def humanize_validation_error(error: dict) -> str:
    """Turn a pydantic error into ``"<field> <reason>"``."""
    field = _field_name(tuple(error.get("loc", ())))
    err_type = error.get("type", "")
    msg = error.get("msg", "")

    if err_type == "value_error" and "email" in msg.lower():
        return f"{field} must be an email"
    if err_type == "string_too_short":
        min_length = (error.get("ctx") or {}).get("min_length")
        if min_length:
            return f"{field} must be longer than or equal to {min_length} characters"
    reason = _VALIDATION_REASONS.get(err_type)
    if reason:
        return f"{field} {reason}"
    return f"{field} {msg}".strip()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [humanize_validation_error(e) for e in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"statusCode": 400, "message": messages, "error": "Bad Request"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"💥 Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
