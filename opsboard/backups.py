"""
Backup use cases: quick JSON export and management of backup files.

Every operation re-reads the project from the database and derives the
remote folder from its stored name, so callers cannot redirect uploads or
reads into another project's folder. Download and delete additionally
require the file id to be listed under the project's folder.

Quick exports are written straight into the shared root folder while
managed backups live in per-project subfolders, so exports do not show up
in the managed list. Existing backups depend on this layout.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from opsboard.archive import ArchiveClient, BackupArtifact, DownloadedArtifact
from opsboard.db import DbClient, ProjectRecord
from opsboard.errors import (
    ArchiveError,
    ArchiveNotConnectedError,
    OwnershipMismatch,
    ProjectNotFound,
    RemoteNotConnected,
    RemoteOperationFailed,
    ValidationFailed,
)
from opsboard.naming import snapshot_file_name, utcnow
from opsboard.snapshot import SnapshotSummary, build_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportResult:
    file_id: str
    file_name: str
    web_view_link: Optional[str]
    summary: SnapshotSummary


@contextmanager
def _remote(action: str):
    try:
        yield
    except ArchiveNotConnectedError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise RemoteNotConnected(action, exc) from exc
    except ArchiveError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise RemoteOperationFailed(action, exc) from exc


class BackupService:
    def __init__(
        self,
        db: DbClient,
        archive: ArchiveClient,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.archive = archive
        self.clock = clock

    def _project(self, project_id: Optional[str]) -> ProjectRecord:
        if not project_id:
            raise ValidationFailed("Project ID is required")
        project = self.db.get_project(project_id)
        if not project:
            raise ProjectNotFound(project_id)
        return project

    def _require_listed(self, project: ProjectRecord, file_id: str) -> None:
        backups = self.archive.list_artifacts(project.project_name)
        if not any(backup.id == file_id for backup in backups):
            logger.warning(
                "Rejected access to file %s outside project %s", file_id, project.id
            )
            raise OwnershipMismatch(project.id, file_id)

    def list_backups(self, project_id: str) -> list[BackupArtifact]:
        project = self._project(project_id)
        with _remote("list backups"):
            return self.archive.list_artifacts(project.project_name)

    def upload_backup(
        self,
        project_id: Optional[str],
        file_name: Optional[str],
        data: Optional[bytes],
        mime_type: Optional[str],
    ) -> BackupArtifact:
        if data is None or not file_name:
            raise ValidationFailed("No file uploaded")
        project = self._project(project_id)
        with _remote("upload backup"):
            return self.archive.upload_artifact(
                project.project_name,
                file_name,
                data,
                mime_type or "application/octet-stream",
                now=self.clock(),
            )

    def open_download(self, project_id: str, file_id: str) -> DownloadedArtifact:
        project = self._project(project_id)
        with _remote("download backup"):
            self._require_listed(project, file_id)
            return self.archive.download_artifact(file_id)

    def delete_backup(self, project_id: str, file_id: str) -> None:
        project = self._project(project_id)
        with _remote("delete backup"):
            self._require_listed(project, file_id)
            self.archive.delete_artifact(file_id)

    def export_snapshot(self, project_id: Optional[str]) -> ExportResult:
        project = self._project(project_id)
        now = self.clock()
        snapshot = build_snapshot(self.db, project.id, now=now)
        file_name = snapshot_file_name(project.project_name, now)
        with _remote("backup to Google Drive"):
            folder_id = self.archive.ensure_root_folder()
            artifact = self.archive.upload_file(
                folder_id, file_name, snapshot.to_json(), "application/json"
            )
        logger.info("Exported project %s to %s", project.id, artifact.name)
        return ExportResult(
            file_id=artifact.id,
            file_name=artifact.name,
            web_view_link=artifact.web_view_link,
            summary=snapshot.summary,
        )
