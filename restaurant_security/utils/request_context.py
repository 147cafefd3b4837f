"""Explicit per-request context handed to every service operation."""

from dataclasses import dataclass

from fastapi import Request


@dataclass(frozen=True)
class RequestContext:
    ip_address: str | None = None
    user_agent: str = ""
    country: str | None = None
    session_token: str | None = None


def client_ip(request: Request) -> str | None:
    """First hop of X-Forwarded-For, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency building the context from request headers."""
    country = request.headers.get("cf-ipcountry") or request.headers.get("x-country-code")
    return RequestContext(
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        country=country.upper() if country else None,
        session_token=request.headers.get("x-session-token"),
    )
