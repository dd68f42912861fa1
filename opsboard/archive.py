"""
Remote archive abstraction for Google Drive and in-memory testing.

Backups live in a three-level hierarchy: one shared root folder, one
subfolder per project (named after the project's display name) and the
backup files inside it. Renaming a project therefore orphans its earlier
backups under the old folder name.

Folders are provisioned with a query-then-create pattern that is not atomic;
two concurrent callers can both create a folder. Lookups order by creation
time so everyone converges on the oldest duplicate.
"""

from __future__ import annotations

import itertools
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional, Protocol

import requests

from opsboard.errors import ArchiveError
from opsboard.naming import backup_file_name, iso_timestamp, utcnow
from opsboard.tokens import TokenProvider

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDER = "Project-Ops Backups"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_MIME_TYPE = "application/octet-stream"
REQUEST_TIMEOUT = 30  # seconds

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
ARTIFACT_FIELDS = "id, name, createdTime, size, mimeType, webContentLink, webViewLink"
METADATA_FIELDS = "id, name, createdTime, size, mimeType"
DOWNLOAD_CHUNK_SIZE = 64 * 1024
LIST_PAGE_SIZE = 1000  # Drive's maximum for files.list


@dataclass(frozen=True)
class BackupArtifact:
    id: str
    name: str
    created_time: Optional[str] = None
    size: Optional[str] = None
    mime_type: Optional[str] = None
    web_content_link: Optional[str] = None
    web_view_link: Optional[str] = None

    @classmethod
    def from_drive(cls, payload: dict) -> "BackupArtifact":
        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            created_time=payload.get("createdTime"),
            size=payload.get("size"),
            mime_type=payload.get("mimeType"),
            web_content_link=payload.get("webContentLink"),
            web_view_link=payload.get("webViewLink"),
        )

    def as_dict(self) -> dict:
        payload = {
            "id": self.id,
            "name": self.name,
            "createdTime": self.created_time,
            "size": self.size,
            "mimeType": self.mime_type,
            "webContentLink": self.web_content_link,
            "webViewLink": self.web_view_link,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass
class DownloadedArtifact:
    name: str
    mime_type: str
    chunks: Iterator[bytes]


class ArchiveClient(Protocol):
    """Defines the operations the backup service needs from remote storage."""

    def ensure_root_folder(self) -> str:
        ...

    def ensure_project_folder(self, project_name: str) -> str:
        ...

    def list_artifacts(self, project_name: str) -> list[BackupArtifact]:
        ...

    def upload_file(
        self, folder_id: str, file_name: str, data: bytes, mime_type: str
    ) -> BackupArtifact:
        ...

    def upload_artifact(
        self,
        project_name: str,
        file_name: str,
        data: bytes,
        mime_type: str,
        *,
        now: Optional[datetime] = None,
    ) -> BackupArtifact:
        ...

    def download_artifact(self, file_id: str) -> DownloadedArtifact:
        ...

    def delete_artifact(self, file_id: str) -> None:
        ...

    def get_artifact_metadata(self, file_id: str) -> BackupArtifact:
        ...


@dataclass
class _StoredFile:
    artifact: BackupArtifact
    parent_id: str
    data: bytes
    seq: int


@dataclass
class InMemoryArchiveClient:
    """Test double for the remote archive. Records every call in ``calls``."""

    root_folder_name: str = DEFAULT_ROOT_FOLDER
    base_url: str = "https://example.test/drive"
    folders: dict = field(default_factory=dict)
    files: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)

    def __post_init__(self):
        self._seq = itertools.count()

    def _find_folder(self, name: str, parent_id: Optional[str]) -> Optional[str]:
        for folder_id, (folder_name, folder_parent) in self.folders.items():
            if folder_name == name and folder_parent == parent_id:
                return folder_id
        return None

    def _ensure_folder(self, name: str, parent_id: Optional[str]) -> str:
        folder_id = self._find_folder(name, parent_id)
        if folder_id is None:
            folder_id = uuid.uuid4().hex
            self.folders[folder_id] = (name, parent_id)
        return folder_id

    def ensure_root_folder(self) -> str:
        self.calls.append("ensure_root_folder")
        return self._ensure_folder(self.root_folder_name, None)

    def ensure_project_folder(self, project_name: str) -> str:
        self.calls.append("ensure_project_folder")
        return self._ensure_folder(project_name, self.ensure_root_folder())

    def list_artifacts(self, project_name: str) -> list[BackupArtifact]:
        self.calls.append("list_artifacts")
        folder_id = self.ensure_project_folder(project_name)
        stored = [f for f in self.files.values() if f.parent_id == folder_id]
        stored.sort(key=lambda f: (f.artifact.created_time, f.seq), reverse=True)
        return [f.artifact for f in stored]

    def upload_file(
        self, folder_id: str, file_name: str, data: bytes, mime_type: str
    ) -> BackupArtifact:
        self.calls.append("upload_file")
        file_id = uuid.uuid4().hex
        artifact = BackupArtifact(
            id=file_id,
            name=file_name,
            created_time=iso_timestamp(utcnow()),
            size=str(len(data)),
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            web_content_link=f"{self.base_url}/{file_id}?export=download",
            web_view_link=f"{self.base_url}/{file_id}/view",
        )
        self.files[file_id] = _StoredFile(
            artifact=artifact, parent_id=folder_id, data=data, seq=next(self._seq)
        )
        return artifact

    def upload_artifact(
        self,
        project_name: str,
        file_name: str,
        data: bytes,
        mime_type: str,
        *,
        now: Optional[datetime] = None,
    ) -> BackupArtifact:
        folder_id = self.ensure_project_folder(project_name)
        return self.upload_file(
            folder_id, backup_file_name(file_name, now), data, mime_type
        )

    def _stored(self, file_id: str) -> _StoredFile:
        stored = self.files.get(file_id)
        if stored is None:
            raise ArchiveError(f"File not found: {file_id}")
        return stored

    def download_artifact(self, file_id: str) -> DownloadedArtifact:
        self.calls.append("download_artifact")
        stored = self._stored(file_id)
        return DownloadedArtifact(
            name=stored.artifact.name,
            mime_type=stored.artifact.mime_type or DEFAULT_MIME_TYPE,
            chunks=iter([stored.data]),
        )

    def delete_artifact(self, file_id: str) -> None:
        self.calls.append("delete_artifact")
        self._stored(file_id)
        del self.files[file_id]

    def get_artifact_metadata(self, file_id: str) -> BackupArtifact:
        self.calls.append("get_artifact_metadata")
        return self._stored(file_id).artifact

    def read(self, file_id: str) -> bytes:
        """Return the stored bytes of a file (useful in tests)."""
        return self._stored(file_id).data


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message")
    return message or f"Google Drive returned HTTP {response.status_code}"


def _multipart_related(metadata: dict, data: bytes, mime_type: str) -> tuple[bytes, str]:
    """
    Build the body for a Drive ``uploadType=multipart`` request.

    Drive expects a ``multipart/related`` body with exactly two parts: the
    file metadata as JSON first, then the raw media with its own content
    type. See https://developers.google.com/drive/api/guides/manage-uploads#multipart

    Returns the body and the matching ``Content-Type`` header value.
    """
    boundary = uuid.uuid4().hex
    body = b"".join(
        [
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
            json.dumps(metadata).encode("utf-8"),
            f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode(),
            data,
            f"\r\n--{boundary}--\r\n".encode(),
        ]
    )
    return body, f"multipart/related; boundary={boundary}"


def _stream_and_close(response: requests.Response) -> Iterator[bytes]:
    # finally also runs when the consumer closes the generator early.
    try:
        yield from response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE)
    finally:
        response.close()


class DriveArchiveClient:
    """
    Google Drive v3 REST client.

    A fresh bearer token is requested from the token provider for every call.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        root_folder_name: str = DEFAULT_ROOT_FOLDER,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.token_provider = token_provider
        self.root_folder_name = root_folder_name
        self.timeout = timeout

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Authorization"] = f"Bearer {self.token_provider.get_token()}"
        try:
            response = requests.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise ArchiveError(
                f"Google Drive request timed out after {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise ArchiveError(str(exc)) from exc
        if not response.ok:
            message = _error_message(response)
            response.close()
            raise ArchiveError(message)
        return response

    def _find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        clauses = [f"name='{_quote(name)}'"]
        if parent_id:
            clauses.append(f"'{_quote(parent_id)}' in parents")
        clauses += [f"mimeType='{FOLDER_MIME_TYPE}'", "trashed=false"]
        response = self._request(
            "GET",
            DRIVE_FILES_URL,
            params={
                "q": " and ".join(clauses),
                "fields": "files(id, name)",
                "orderBy": "createdTime",
            },
        )
        files = response.json().get("files") or []
        return files[0]["id"] if files else None

    def _create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        body = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            body["parents"] = [parent_id]
        response = self._request(
            "POST", DRIVE_FILES_URL, params={"fields": "id"}, json=body
        )
        folder_id = response.json()["id"]
        logger.info("Created Drive folder %r (%s)", name, folder_id)
        return folder_id

    def ensure_root_folder(self) -> str:
        return self._find_folder(self.root_folder_name) or self._create_folder(
            self.root_folder_name
        )

    def ensure_project_folder(self, project_name: str) -> str:
        root_id = self.ensure_root_folder()
        return self._find_folder(project_name, root_id) or self._create_folder(
            project_name, root_id
        )

    def list_artifacts(self, project_name: str) -> list[BackupArtifact]:
        folder_id = self.ensure_project_folder(project_name)
        params = {
            "q": f"'{_quote(folder_id)}' in parents and trashed=false",
            "fields": f"nextPageToken, files({ARTIFACT_FIELDS})",
            "orderBy": "createdTime desc",
            "pageSize": LIST_PAGE_SIZE,
        }
        artifacts: list[BackupArtifact] = []
        while True:
            payload = self._request("GET", DRIVE_FILES_URL, params=params).json()
            artifacts.extend(
                BackupArtifact.from_drive(item) for item in payload.get("files") or []
            )
            page_token = payload.get("nextPageToken")
            if not page_token:
                return artifacts
            params = {**params, "pageToken": page_token}

    def upload_file(
        self, folder_id: str, file_name: str, data: bytes, mime_type: str
    ) -> BackupArtifact:
        body, content_type = _multipart_related(
            {"name": file_name, "parents": [folder_id]},
            data,
            mime_type or DEFAULT_MIME_TYPE,
        )
        response = self._request(
            "POST",
            DRIVE_UPLOAD_URL,
            params={
                "uploadType": "multipart",
                "fields": "id, name, createdTime, size, webViewLink",
            },
            headers={"Content-Type": content_type},
            data=body,
        )
        artifact = BackupArtifact.from_drive(response.json())
        logger.info("Uploaded %s (%s bytes) as %s", file_name, len(data), artifact.id)
        return artifact

    def upload_artifact(
        self,
        project_name: str,
        file_name: str,
        data: bytes,
        mime_type: str,
        *,
        now: Optional[datetime] = None,
    ) -> BackupArtifact:
        folder_id = self.ensure_project_folder(project_name)
        return self.upload_file(
            folder_id, backup_file_name(file_name, now), data, mime_type
        )

    def get_artifact_metadata(self, file_id: str) -> BackupArtifact:
        response = self._request(
            "GET", f"{DRIVE_FILES_URL}/{file_id}", params={"fields": METADATA_FIELDS}
        )
        return BackupArtifact.from_drive(response.json())

    def download_artifact(self, file_id: str) -> DownloadedArtifact:
        metadata = self.get_artifact_metadata(file_id)
        response = self._request(
            "GET", f"{DRIVE_FILES_URL}/{file_id}", params={"alt": "media"}, stream=True
        )
        return DownloadedArtifact(
            name=metadata.name,
            mime_type=metadata.mime_type or DEFAULT_MIME_TYPE,
            chunks=_stream_and_close(response),
        )

    def delete_artifact(self, file_id: str) -> None:
        self._request("DELETE", f"{DRIVE_FILES_URL}/{file_id}")
        logger.info("Deleted Drive file %s", file_id)
