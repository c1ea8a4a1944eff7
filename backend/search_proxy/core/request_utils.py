"""Request helpers shared by the analytics endpoints"""
import secrets
import time
from typing import Any, Mapping, Optional

from fastapi import Request

from search_proxy.schemas.analytics import sanitize_session_id

# Priority order: proxy middleware, platform real IP, first forwarded hop
_IP_HEADERS = (
    "x-original-client-ip",
    "x-real-ip",
    "x-forwarded-for",
    "x-vercel-proxied-for",
    "x-vercel-forwarded-for",
)


def extract_client_ip(request: Request) -> Optional[str]:
    """Most reliable client IP, or None when nothing is known"""
    for header in _IP_HEADERS:
        value = request.headers.get(header)
        if value:
            ip = value.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return None


def extract_session_id(
    request: Request, body: Optional[Mapping[str, Any]] = None
) -> Optional[str]:
    """Session id from query string, ``x-session-id`` header, then body"""
    candidates = (
        request.query_params.get("sessionId"),
        request.headers.get("x-session-id"),
        (body or {}).get("sessionId"),
    )
    for value in candidates:
        session_id = sanitize_session_id(value)
        if session_id:
            return session_id
    return None


def generate_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def get_request_id(request: Request) -> str:
    return (
        request.headers.get("x-request-id")
        or request.headers.get("x-vercel-id")
        or generate_request_id()
    )
