import os
import tempfile
import unittest

from opsboard.db import InMemoryDbClient, SqlDbClient


class SqlDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.tmpdir = tempfile.TemporaryDirectory()
        url = f"sqlite+pysqlite:///{os.path.join(cls.tmpdir.name, 'opsboard.db')}"
        cls.db = SqlDbClient(url)

    @classmethod
    def tearDownClass(cls):
        cls.db.engine.dispose()
        cls.tmpdir.cleanup()

    def test_create_and_get_project(self):
        project = self.db.create_project(
            {"project_name": "Alpha", "technology_stack": ["python", "fastapi"]}
        )
        fetched = self.db.get_project(project.id)
        self.assertIsNotNone(fetched)
        self.assertEqual(fetched.project_name, "Alpha")
        self.assertEqual(fetched.status, "Planning")
        self.assertEqual(fetched.technology_stack, ["python", "fastapi"])
        self.assertEqual(fetched.as_dict()["repoLink"], "")

    def test_get_missing_project(self):
        self.assertIsNone(self.db.get_project("nope"))
        self.assertIsNone(self.db.update_project("nope", {"description": "x"}))
        self.assertFalse(self.db.delete_project("nope"))

    def test_update_project_is_partial_and_bumps_updated_at(self):
        project = self.db.create_project(
            {"project_name": "Beta", "description": "first"}
        )
        updated = self.db.update_project(project.id, {"status": "Live", "id": "hijack"})
        self.assertEqual(updated.id, project.id)
        self.assertEqual(updated.status, "Live")
        self.assertEqual(updated.description, "first")
        self.assertGreaterEqual(
            updated.updated_at.replace(tzinfo=None),
            project.updated_at.replace(tzinfo=None),
        )

    def test_issue_defaults_and_update(self):
        project = self.db.create_project({"project_name": "Gamma"})
        issue = self.db.create_issue(project.id, {"title": "Crash on save"})
        self.assertEqual(issue.priority, "Medium")
        self.assertEqual(issue.status, "Open")

        closed = self.db.update_issue(issue.id, {"status": "Closed"})
        self.assertEqual(closed.status, "Closed")
        self.assertEqual(closed.title, "Crash on save")
        self.assertEqual([i.id for i in self.db.list_issues(project.id)], [issue.id])

    def test_child_delete(self):
        project = self.db.create_project({"project_name": "Delta"})
        goal = self.db.create_goal(project.id, {"text": "Ship it"})
        self.assertTrue(self.db.delete_goal(goal.id))
        self.assertFalse(self.db.delete_goal(goal.id))
        self.assertEqual(self.db.list_goals(project.id), [])

    def test_delete_project_cascades(self):
        project = self.db.create_project({"project_name": "Epsilon"})
        other = self.db.create_project({"project_name": "Zeta"})
        self.db.create_issue(project.id, {"title": "Bug"})
        self.db.create_credential(project.id, {"key": "API_KEY", "value": "abc"})
        self.db.create_team_member(project.id, {"name": "Sam", "role": "Dev"})
        self.db.create_goal(project.id, {"text": "Launch"})
        self.db.create_goal(other.id, {"text": "Keep me"})

        self.assertTrue(self.db.delete_project(project.id))

        self.assertIsNone(self.db.get_project(project.id))
        self.assertEqual(self.db.list_issues(project.id), [])
        self.assertEqual(self.db.list_credentials(project.id), [])
        self.assertEqual(self.db.list_team_members(project.id), [])
        self.assertEqual(self.db.list_goals(project.id), [])
        self.assertEqual(len(self.db.list_goals(other.id)), 1)


class InMemoryDbClientTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_delete_project_cascades(self):
        project = self.db.create_project({"project_name": "Alpha"})
        self.db.create_issue(project.id, {"title": "Bug"})
        self.db.create_credential(project.id, {"key": "TOKEN", "value": "t"})
        self.db.create_team_member(project.id, {"name": "Sam", "role": "Dev"})
        self.db.create_goal(project.id, {"text": "Launch"})

        self.assertTrue(self.db.delete_project(project.id))

        self.assertEqual(self.db.list_issues(project.id), [])
        self.assertEqual(self.db.list_credentials(project.id), [])
        self.assertEqual(self.db.list_team_members(project.id), [])
        self.assertEqual(self.db.list_goals(project.id), [])
        self.assertEqual(self.db.credentials, {})

    def test_list_projects_orders_by_updated_at(self):
        first = self.db.create_project({"project_name": "First"})
        second = self.db.create_project({"project_name": "Second"})
        self.db.update_project(first.id, {"description": "touched"})
        self.assertEqual(
            [p.id for p in self.db.list_projects()], [second.id, first.id]
        )

    def test_update_ignores_unknown_fields(self):
        project = self.db.create_project({"project_name": "Alpha"})
        member = self.db.create_team_member(project.id, {"name": "Sam", "role": "Dev"})
        updated = self.db.update_team_member(
            member.id, {"contact": "sam@example.com", "project_id": "other"}
        )
        self.assertEqual(updated.contact, "sam@example.com")
        self.assertEqual(updated.project_id, project.id)


if __name__ == "__main__":
    unittest.main()
