"""
Timestamp and file-name helpers for backup artifacts.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(value: datetime) -> str:
    """Format as UTC ISO-8601 with milliseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    millis = value.microsecond // 1000
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"


def filename_timestamp(value: datetime) -> str:
    return re.sub(r"[:.]", "-", iso_timestamp(value))


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def backup_file_name(original_name: str, now: Optional[datetime] = None) -> str:
    """
    Name used for uploaded backups, e.g.
    ``backup-2024-03-05T10-00-00-000Z-report.final__v2_.zip``.
    """
    stamp = filename_timestamp(now or utcnow())
    return f"backup-{stamp}-{sanitize_filename(original_name)}"


def snapshot_file_name(project_name: str, now: Optional[datetime] = None) -> str:
    stamp = filename_timestamp(now or utcnow())
    return f"{project_name or 'project'}-backup-{stamp}.json"
