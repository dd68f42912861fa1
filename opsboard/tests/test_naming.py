import re
import unittest
from datetime import datetime, timezone

from opsboard.naming import (
    backup_file_name,
    filename_timestamp,
    iso_timestamp,
    sanitize_filename,
    snapshot_file_name,
)

MOMENT = datetime(2024, 3, 5, 10, 0, 0, tzinfo=timezone.utc)


class NamingTests(unittest.TestCase):
    def test_iso_timestamp_matches_javascript_format(self):
        self.assertEqual(iso_timestamp(MOMENT), "2024-03-05T10:00:00.000Z")
        self.assertEqual(
            iso_timestamp(datetime(2024, 1, 2, 3, 4, 5, 678901)),
            "2024-01-02T03:04:05.678Z",
        )

    def test_filename_timestamp_replaces_colons_and_dots(self):
        self.assertEqual(filename_timestamp(MOMENT), "2024-03-05T10-00-00-000Z")

    def test_backup_file_name(self):
        self.assertEqual(
            backup_file_name("report.final (v2).zip", MOMENT),
            "backup-2024-03-05T10-00-00-000Z-report.final__v2_.zip",
        )

    def test_sanitize_is_total_and_idempotent(self):
        samples = [
            "",
            "plain.txt",
            "spaces and (parens).tar.gz",
            "ünïcödé-名前.json",
            "../../etc/passwd",
            "quote\"and'apostrophe",
            "tab\tnewline\n",
        ]
        for sample in samples:
            with self.subTest(sample=sample):
                once = sanitize_filename(sample)
                self.assertRegex(once, r"^[A-Za-z0-9.-]*$")
                self.assertEqual(sanitize_filename(once), once)
                self.assertEqual(len(once), len(sample))

    def test_snapshot_file_name_falls_back_to_project(self):
        self.assertEqual(
            snapshot_file_name("Alpha", MOMENT),
            "Alpha-backup-2024-03-05T10-00-00-000Z.json",
        )
        self.assertTrue(
            re.match(r"^project-backup-.*\.json$", snapshot_file_name("", MOMENT))
        )


if __name__ == "__main__":
    unittest.main()
