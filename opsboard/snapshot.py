"""
Point-in-time export of one project's full aggregate.

The three child reads run concurrently and are not isolated from each other,
so a snapshot taken while the project is being edited can mix states (for
example an issue counted as open that was closed a moment later).
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from opsboard.db import DbClient, GoalRecord, IssueRecord, ProjectRecord, TeamMemberRecord
from opsboard.errors import ProjectNotFound
from opsboard.naming import iso_timestamp, utcnow
from opsboard.types import IssueStatus


@dataclass(frozen=True)
class SnapshotSummary:
    total_issues: int
    total_team_members: int
    total_goals: int
    open_issues: int
    completed_goals: int

    def as_dict(self) -> dict:
        return {
            "totalIssues": self.total_issues,
            "totalTeamMembers": self.total_team_members,
            "totalGoals": self.total_goals,
            "openIssues": self.open_issues,
            "completedGoals": self.completed_goals,
        }


@dataclass(frozen=True)
class Snapshot:
    exported_at: datetime
    project: ProjectRecord
    issues: list[IssueRecord]
    team_members: list[TeamMemberRecord]
    goals: list[GoalRecord]

    @property
    def summary(self) -> SnapshotSummary:
        return SnapshotSummary(
            total_issues=len(self.issues),
            total_team_members=len(self.team_members),
            total_goals=len(self.goals),
            open_issues=sum(1 for i in self.issues if i.status == IssueStatus.OPEN),
            completed_goals=sum(1 for g in self.goals if g.completed),
        )

    def to_dict(self) -> dict:
        return {
            "exportedAt": iso_timestamp(self.exported_at),
            "project": self.project.as_dict(),
            "issues": [issue.as_dict() for issue in self.issues],
            "teamMembers": [member.as_dict() for member in self.team_members],
            "goals": [goal.as_dict() for goal in self.goals],
            "metadata": self.summary.as_dict(),
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")


def build_snapshot(
    db: DbClient, project_id: str, *, now: Optional[datetime] = None
) -> Snapshot:
    project = db.get_project(project_id)
    if not project:
        raise ProjectNotFound(project_id)

    with ThreadPoolExecutor(max_workers=3) as pool:
        issues = pool.submit(db.list_issues, project_id)
        team = pool.submit(db.list_team_members, project_id)
        goals = pool.submit(db.list_goals, project_id)
        return Snapshot(
            exported_at=now or utcnow(),
            project=project,
            issues=issues.result(),
            team_members=team.result(),
            goals=goals.result(),
        )
