"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends

from opsboard.archive import ArchiveClient, DriveArchiveClient, InMemoryArchiveClient
from opsboard.auth import CredentialVerifier, StaticCredentialVerifier
from opsboard.backups import BackupService
from opsboard.config import get_settings
from opsboard.db import DbClient, InMemoryDbClient, SqlDbClient
from opsboard.tokens import ConnectorTokenProvider, StaticTokenProvider, TokenProvider

_db_client: DbClient | None = None
_archive_client: ArchiveClient | None = None
_token_provider: TokenProvider | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so data persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_token_provider() -> TokenProvider:
    global _token_provider
    if _token_provider:
        return _token_provider

    settings = get_settings()
    if settings.drive_access_token:
        _token_provider = StaticTokenProvider(settings.drive_access_token)
    else:
        _token_provider = ConnectorTokenProvider(
            settings.replit_connectors_hostname,
            repl_identity=settings.repl_identity,
            web_repl_renewal=settings.web_repl_renewal,
            timeout=settings.remote_timeout_seconds,
        )
    return _token_provider


def get_archive_client() -> ArchiveClient:
    global _archive_client
    if _archive_client:
        return _archive_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _archive_client = InMemoryArchiveClient(
            root_folder_name=settings.drive_root_folder_name
        )
    else:
        _archive_client = DriveArchiveClient(
            get_token_provider(),
            root_folder_name=settings.drive_root_folder_name,
            timeout=settings.remote_timeout_seconds,
        )
    return _archive_client


def get_credential_verifier() -> CredentialVerifier:
    settings = get_settings()
    return StaticCredentialVerifier(settings.admin_username, settings.admin_password)


def get_backup_service(
    db: DbClient = Depends(get_db_client),
    archive: ArchiveClient = Depends(get_archive_client),
) -> BackupService:
    return BackupService(db, archive)
