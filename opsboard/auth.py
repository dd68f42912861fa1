"""
Single-user authentication: a pluggable credential check plus the
session-cookie gate used by every protected route.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request

from opsboard.errors import AuthenticationRequired

SESSION_FLAG = "isAuthenticated"


class CredentialVerifier(Protocol):
    def verify(self, username: str, password: str) -> bool:
        ...


@dataclass(frozen=True)
class StaticCredentialVerifier:
    """Accepts exactly one configured username/password pair."""

    username: str
    password: str

    def verify(self, username: str, password: str) -> bool:
        if not self.username or not self.password:
            return False
        user_ok = hmac.compare_digest(
            (username or "").encode("utf-8"), self.username.encode("utf-8")
        )
        password_ok = hmac.compare_digest(
            (password or "").encode("utf-8"), self.password.encode("utf-8")
        )
        return user_ok and password_ok


def is_authenticated(request: Request) -> bool:
    return bool(request.session.get(SESSION_FLAG))


def require_auth(request: Request) -> None:
    if not is_authenticated(request):
        raise AuthenticationRequired()
