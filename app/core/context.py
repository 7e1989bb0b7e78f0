from contextvars import ContextVar

from fastapi import Request

current_request: ContextVar[Request | None] = ContextVar(
    "current_request", default=None
)


def get_request() -> Request:
    req = current_request.get()
    if req is None:
        raise RuntimeError(
            "No Request in context, RequestContextMiddleware is not installed"
        )
    return req


def get_client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None
