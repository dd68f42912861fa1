"""
Access-token providers for the remote archive.

Archive clients ask their provider for a token on every call instead of
holding one, since connector tokens expire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

import requests

from opsboard.errors import ArchiveNotConnectedError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds


class TokenProvider(Protocol):
    def get_token(self) -> str:
        ...


@dataclass
class StaticTokenProvider:
    """Returns a fixed, externally managed bearer token."""

    token: Optional[str]

    def get_token(self) -> str:
        if not self.token:
            raise ArchiveNotConnectedError("Google Drive not connected")
        return self.token


def _parse_expiry(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        expires_at = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable token expiry %r", value)
        return None
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at


class ConnectorTokenProvider:
    """
    Fetches OAuth access tokens from the hosting platform's connector service.

    The connection settings are kept on the instance and reused only while
    their ``expires_at`` lies in the future.
    """

    def __init__(
        self,
        hostname: Optional[str],
        *,
        repl_identity: Optional[str] = None,
        web_repl_renewal: Optional[str] = None,
        connector_name: str = "google-drive",
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.hostname = hostname
        self.repl_identity = repl_identity
        self.web_repl_renewal = web_repl_renewal
        self.connector_name = connector_name
        self.timeout = timeout
        self._settings: Optional[dict] = None

    def _identity_header(self) -> str:
        if self.repl_identity:
            return f"repl {self.repl_identity}"
        if self.web_repl_renewal:
            return f"depl {self.web_repl_renewal}"
        raise ArchiveNotConnectedError("X_REPLIT_TOKEN not found for repl/depl")

    @staticmethod
    def _access_token(settings: Optional[dict]) -> Optional[str]:
        if not settings:
            return None
        return settings.get("access_token") or (
            ((settings.get("oauth") or {}).get("credentials") or {}).get("access_token")
        )

    def _cached_token(self) -> Optional[str]:
        if not self._settings:
            return None
        expires_at = _parse_expiry(self._settings.get("expires_at"))
        if expires_at and expires_at > datetime.now(timezone.utc):
            return self._access_token(self._settings)
        return None

    def _fetch_settings(self) -> Optional[dict]:
        if not self.hostname:
            raise ArchiveNotConnectedError("Google Drive connector hostname not configured")
        url = f"https://{self.hostname}/api/v2/connection"
        try:
            response = requests.get(
                url,
                params={
                    "include_secrets": "true",
                    "connector_names": self.connector_name,
                },
                headers={
                    "Accept": "application/json",
                    "X_REPLIT_TOKEN": self._identity_header(),
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            items = response.json().get("items") or []
        except (requests.RequestException, ValueError) as exc:
            raise ArchiveNotConnectedError(
                f"Could not reach connector service: {exc}"
            ) from exc
        if not items:
            return None
        return items[0].get("settings")

    def get_token(self) -> str:
        token = self._cached_token()
        if token:
            return token

        logger.info("Refreshing %s access token", self.connector_name)
        self._settings = self._fetch_settings()
        token = self._access_token(self._settings)
        if not token:
            raise ArchiveNotConnectedError("Google Drive not connected")
        return token
