"""
Error types shared by the store, the archive client and the HTTP layer.
"""

from __future__ import annotations

from typing import Optional


class ArchiveError(Exception):
    """Raised by archive clients when a remote storage call fails."""


class ArchiveNotConnectedError(ArchiveError):
    """Raised when no usable access token can be obtained for the archive."""


class AppError(Exception):
    """Base exception for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, error: str, message: Optional[str] = None):
        super().__init__(message or error)
        self.error = error
        self.message = message

    def to_payload(self) -> dict:
        payload = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        return payload


class NotFound(AppError):
    status_code = 404


class ProjectNotFound(NotFound):
    def __init__(self, project_id: str):
        super().__init__("Project not found")
        self.project_id = project_id


class ValidationFailed(AppError):
    status_code = 400


class AuthenticationRequired(AppError):
    status_code = 401

    def __init__(self, error: str = "Not authenticated"):
        super().__init__(error)


class OwnershipMismatch(AppError):
    """Artifact id is not listed under the requesting project's folder."""

    status_code = 403

    def __init__(self, project_id: str, file_id: str):
        super().__init__("File does not belong to this project")
        self.project_id = project_id
        self.file_id = file_id


class RemoteOperationFailed(AppError):
    """Wraps a lower-level archive failure; the original message is kept."""

    def __init__(self, action: str, cause: Exception):
        super().__init__(f"Failed to {action}", str(cause))
        self.action = action


class RemoteNotConnected(RemoteOperationFailed):
    """The archive connector or its token is misconfigured."""
