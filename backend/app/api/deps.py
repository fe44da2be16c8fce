"""
FastAPI dependencies shared by the feed routes.

Authentication is done upstream: the gateway verifies the session
credential and forwards the caller as `X-User-Id` / `X-User-Role`
headers. This service trusts those headers and never sees a token.
Requests without them are anonymous and get the global (unfiltered) feed
unless they pass a location override.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Header

from backend.app.core.config import settings


class Role(str, Enum):
    USER      = "user"
    NGO       = "ngo"
    MODERATOR = "moderator"
    ADMIN     = "admin"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: Role = Role.USER


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[AuthContext]:
    """Caller identity forwarded by the auth gateway, or None if anonymous."""
    if not x_user_id:
        return None
    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError:
        role = Role.USER
    return AuthContext(user_id=x_user_id, role=role)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """One HTTP client per request, shared by the external feed adapters."""
    async with httpx.AsyncClient(timeout=settings.FEED_FETCH_TIMEOUT) as client:
        yield client
