import json
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from opsboard.archive import InMemoryArchiveClient
from opsboard.backups import BackupService
from opsboard.db import InMemoryDbClient
from opsboard.errors import (
    ArchiveError,
    ArchiveNotConnectedError,
    OwnershipMismatch,
    ProjectNotFound,
    RemoteNotConnected,
    RemoteOperationFailed,
    ValidationFailed,
)

MOMENT = datetime(2024, 3, 5, 10, 0, 0, tzinfo=timezone.utc)


class BackupServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.archive = InMemoryArchiveClient()
        self.service = BackupService(self.db, self.archive, clock=lambda: MOMENT)
        self.alpha = self.db.create_project({"project_name": "Alpha"})
        self.beta = self.db.create_project({"project_name": "Beta"})

    def test_upload_then_list(self):
        artifact = self.service.upload_backup(
            self.alpha.id, "report.final (v2).zip", b"zip-bytes", "application/zip"
        )
        self.assertEqual(
            artifact.name, "backup-2024-03-05T10-00-00-000Z-report.final__v2_.zip"
        )

        listed = self.service.list_backups(self.alpha.id)
        self.assertEqual([a.id for a in listed], [artifact.id])
        self.assertTrue(listed[0].name.startswith("backup-"))
        self.assertEqual(self.service.list_backups(self.beta.id), [])

    def test_list_is_newest_first(self):
        first = self.service.upload_backup(self.alpha.id, "a.txt", b"a", "text/plain")
        second = self.service.upload_backup(self.alpha.id, "b.txt", b"b", "text/plain")
        listed = self.service.list_backups(self.alpha.id)
        self.assertEqual([a.id for a in listed], [second.id, first.id])

    def test_upload_goes_into_project_folder(self):
        self.service.upload_backup(self.alpha.id, "a.txt", b"a", "text/plain")
        names = {name for name, _ in self.archive.folders.values()}
        self.assertEqual(names, {"Project-Ops Backups", "Alpha"})

    def test_upload_requires_file_and_project(self):
        with self.assertRaises(ValidationFailed) as ctx:
            self.service.upload_backup(self.alpha.id, None, None, None)
        self.assertEqual(ctx.exception.error, "No file uploaded")
        with self.assertRaises(ValidationFailed) as ctx:
            self.service.upload_backup(None, "a.txt", b"a", "text/plain")
        self.assertEqual(ctx.exception.error, "Project ID is required")
        self.assertEqual(self.archive.calls, [])

    def test_unknown_project(self):
        with self.assertRaises(ProjectNotFound):
            self.service.list_backups("missing")
        self.assertEqual(self.archive.calls, [])

    def test_download_owned_file(self):
        artifact = self.service.upload_backup(
            self.alpha.id, "notes.txt", b"hello", "text/plain"
        )
        download = self.service.open_download(self.alpha.id, artifact.id)
        self.assertEqual(download.name, artifact.name)
        self.assertEqual(download.mime_type, "text/plain")
        self.assertEqual(b"".join(download.chunks), b"hello")

    def test_download_of_foreign_file_is_rejected_without_fetching(self):
        artifact = self.service.upload_backup(
            self.beta.id, "secret.txt", b"beta", "text/plain"
        )
        self.archive.calls.clear()

        with self.assertRaises(OwnershipMismatch):
            self.service.open_download(self.alpha.id, artifact.id)
        with self.assertRaises(OwnershipMismatch):
            self.service.open_download(self.alpha.id, "guessed-id")

        self.assertEqual(self.archive.calls.count("download_artifact"), 0)
        self.assertEqual(self.archive.calls.count("get_artifact_metadata"), 0)

    def test_delete_of_foreign_file_is_rejected_without_deleting(self):
        artifact = self.service.upload_backup(
            self.beta.id, "secret.txt", b"beta", "text/plain"
        )
        with self.assertRaises(OwnershipMismatch):
            self.service.delete_backup(self.alpha.id, artifact.id)
        self.assertEqual(self.archive.calls.count("delete_artifact"), 0)
        self.assertIn(artifact.id, self.archive.files)

    def test_delete_owned_file(self):
        artifact = self.service.upload_backup(self.alpha.id, "a.txt", b"a", "text/plain")
        self.service.delete_backup(self.alpha.id, artifact.id)
        self.assertEqual(self.service.list_backups(self.alpha.id), [])

    def test_export_snapshot_scenario(self):
        for title, status in (("One", "Open"), ("Two", "Open"), ("Three", "Closed")):
            self.db.create_issue(self.alpha.id, {"title": title, "status": status})
        self.db.create_goal(self.alpha.id, {"text": "Done", "completed": True})
        self.db.create_goal(self.alpha.id, {"text": "Todo"})

        result = self.service.export_snapshot(self.alpha.id)

        self.assertEqual(
            result.summary.as_dict(),
            {
                "totalIssues": 3,
                "totalTeamMembers": 0,
                "totalGoals": 2,
                "openIssues": 2,
                "completedGoals": 1,
            },
        )
        self.assertEqual(result.file_name, "Alpha-backup-2024-03-05T10-00-00-000Z.json")
        self.assertIsNotNone(result.web_view_link)
        document = json.loads(self.archive.read(result.file_id))
        self.assertEqual(document["project"]["id"], self.alpha.id)
        self.assertEqual(document["exportedAt"], "2024-03-05T10:00:00.000Z")

    def test_export_lands_in_root_folder_not_managed_list(self):
        result = self.service.export_snapshot(self.alpha.id)
        root_id = self.archive.ensure_root_folder()
        self.assertEqual(self.archive.files[result.file_id].parent_id, root_id)
        self.assertEqual(self.service.list_backups(self.alpha.id), [])

    def test_export_requires_project_id(self):
        with self.assertRaises(ValidationFailed):
            self.service.export_snapshot("")

    def test_remote_failures_are_wrapped(self):
        with patch.object(
            self.archive, "list_artifacts", side_effect=ArchiveError("quota exceeded")
        ):
            with self.assertRaises(RemoteOperationFailed) as ctx:
                self.service.list_backups(self.alpha.id)
        self.assertEqual(
            ctx.exception.to_payload(),
            {"error": "Failed to list backups", "message": "quota exceeded"},
        )
        self.assertEqual(ctx.exception.status_code, 500)

    def test_missing_connection_is_reported(self):
        with patch.object(
            self.archive,
            "ensure_root_folder",
            side_effect=ArchiveNotConnectedError("Google Drive not connected"),
        ):
            with self.assertRaises(RemoteNotConnected) as ctx:
                self.service.export_snapshot(self.alpha.id)
        self.assertEqual(ctx.exception.message, "Google Drive not connected")


if __name__ == "__main__":
    unittest.main()
