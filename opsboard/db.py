"""
Database abstraction for SQL engines and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    create_engine,
    delete,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from opsboard.naming import iso_timestamp, utcnow
from opsboard.types import IssuePriority, IssueStatus, ProjectStatus

PROJECT_FIELDS = (
    "project_name",
    "description",
    "status",
    "start_date",
    "technology_stack",
    "repo_link",
    "live_link",
    "dev_notes",
)
ISSUE_FIELDS = ("title", "description", "priority", "status")
CREDENTIAL_FIELDS = ("key", "value")
TEAM_MEMBER_FIELDS = ("name", "role", "contact")
GOAL_FIELDS = ("text", "completed")


def _new_id() -> str:
    return uuid.uuid4().hex


def _pick(fields: dict, allowed: tuple[str, ...]) -> dict:
    return {key: value for key, value in fields.items() if key in allowed}


@dataclass
class ProjectRecord:
    id: str
    project_name: str
    description: str = ""
    status: str = ProjectStatus.PLANNING.value
    start_date: str = ""
    technology_stack: list[str] = field(default_factory=list)
    repo_link: str = ""
    live_link: str = ""
    dev_notes: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "projectName": self.project_name,
            "description": self.description,
            "status": self.status,
            "startDate": self.start_date,
            "technologyStack": list(self.technology_stack),
            "repoLink": self.repo_link,
            "liveLink": self.live_link,
            "devNotes": self.dev_notes,
            "createdAt": iso_timestamp(self.created_at),
            "updatedAt": iso_timestamp(self.updated_at),
        }


@dataclass
class IssueRecord:
    id: str
    project_id: str
    title: str
    description: str = ""
    priority: str = IssuePriority.MEDIUM.value
    status: str = IssueStatus.OPEN.value
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "createdAt": iso_timestamp(self.created_at),
        }


@dataclass
class CredentialRecord:
    """Key/value pair stored as plain text. Not safe for production secrets."""

    id: str
    project_id: str
    key: str
    value: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "key": self.key,
            "value": self.value,
        }


@dataclass
class TeamMemberRecord:
    id: str
    project_id: str
    name: str
    role: str
    contact: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "role": self.role,
            "contact": self.contact,
        }


@dataclass
class GoalRecord:
    id: str
    project_id: str
    text: str
    completed: bool = False

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "text": self.text,
            "completed": self.completed,
        }


class DbClient(Protocol):
    """Interface for database access."""

    def create_project(self, fields: dict) -> ProjectRecord:
        ...

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        ...

    def list_projects(self) -> list[ProjectRecord]:
        ...

    def update_project(self, project_id: str, fields: dict) -> Optional[ProjectRecord]:
        ...

    def delete_project(self, project_id: str) -> bool:
        ...

    def create_issue(self, project_id: str, fields: dict) -> IssueRecord:
        ...

    def list_issues(self, project_id: str) -> list[IssueRecord]:
        ...

    def update_issue(self, issue_id: str, fields: dict) -> Optional[IssueRecord]:
        ...

    def delete_issue(self, issue_id: str) -> bool:
        ...

    def create_credential(self, project_id: str, fields: dict) -> CredentialRecord:
        ...

    def list_credentials(self, project_id: str) -> list[CredentialRecord]:
        ...

    def update_credential(
        self, credential_id: str, fields: dict
    ) -> Optional[CredentialRecord]:
        ...

    def delete_credential(self, credential_id: str) -> bool:
        ...

    def create_team_member(self, project_id: str, fields: dict) -> TeamMemberRecord:
        ...

    def list_team_members(self, project_id: str) -> list[TeamMemberRecord]:
        ...

    def update_team_member(
        self, member_id: str, fields: dict
    ) -> Optional[TeamMemberRecord]:
        ...

    def delete_team_member(self, member_id: str) -> bool:
        ...

    def create_goal(self, project_id: str, fields: dict) -> GoalRecord:
        ...

    def list_goals(self, project_id: str) -> list[GoalRecord]:
        ...

    def update_goal(self, goal_id: str, fields: dict) -> Optional[GoalRecord]:
        ...

    def delete_goal(self, goal_id: str) -> bool:
        ...


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.projects: Dict[str, ProjectRecord] = {}
        self.issues: Dict[str, IssueRecord] = {}
        self.credentials: Dict[str, CredentialRecord] = {}
        self.team_members: Dict[str, TeamMemberRecord] = {}
        self.goals: Dict[str, GoalRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.projects.clear()
        self.issues.clear()
        self.credentials.clear()
        self.team_members.clear()
        self.goals.clear()

    def _children(self) -> tuple[dict, ...]:
        return (self.issues, self.credentials, self.team_members, self.goals)

    def create_project(self, fields: dict) -> ProjectRecord:
        record = ProjectRecord(id=_new_id(), **_pick(fields, PROJECT_FIELDS))
        self.projects[record.id] = record
        return record

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        return self.projects.get(project_id)

    def list_projects(self) -> list[ProjectRecord]:
        return sorted(self.projects.values(), key=lambda p: p.updated_at)

    def update_project(self, project_id: str, fields: dict) -> Optional[ProjectRecord]:
        project = self.projects.get(project_id)
        if not project:
            return None
        updated = replace(
            project, **_pick(fields, PROJECT_FIELDS), updated_at=utcnow()
        )
        self.projects[project_id] = updated
        return updated

    def delete_project(self, project_id: str) -> bool:
        for table in self._children():
            for child_id in [
                key for key, child in table.items() if child.project_id == project_id
            ]:
                del table[child_id]
        return self.projects.pop(project_id, None) is not None

    def _update(self, table: dict, item_id: str, fields: dict, allowed: tuple):
        item = table.get(item_id)
        if not item:
            return None
        table[item_id] = replace(item, **_pick(fields, allowed))
        return table[item_id]

    def _list(self, table: dict, project_id: str) -> list:
        return [item for item in table.values() if item.project_id == project_id]

    def create_issue(self, project_id: str, fields: dict) -> IssueRecord:
        record = IssueRecord(
            id=_new_id(), project_id=project_id, **_pick(fields, ISSUE_FIELDS)
        )
        self.issues[record.id] = record
        return record

    def list_issues(self, project_id: str) -> list[IssueRecord]:
        return self._list(self.issues, project_id)

    def update_issue(self, issue_id: str, fields: dict) -> Optional[IssueRecord]:
        return self._update(self.issues, issue_id, fields, ISSUE_FIELDS)

    def delete_issue(self, issue_id: str) -> bool:
        return self.issues.pop(issue_id, None) is not None

    def create_credential(self, project_id: str, fields: dict) -> CredentialRecord:
        record = CredentialRecord(
            id=_new_id(), project_id=project_id, **_pick(fields, CREDENTIAL_FIELDS)
        )
        self.credentials[record.id] = record
        return record

    def list_credentials(self, project_id: str) -> list[CredentialRecord]:
        return self._list(self.credentials, project_id)

    def update_credential(
        self, credential_id: str, fields: dict
    ) -> Optional[CredentialRecord]:
        return self._update(
            self.credentials, credential_id, fields, CREDENTIAL_FIELDS
        )

    def delete_credential(self, credential_id: str) -> bool:
        return self.credentials.pop(credential_id, None) is not None

    def create_team_member(self, project_id: str, fields: dict) -> TeamMemberRecord:
        record = TeamMemberRecord(
            id=_new_id(), project_id=project_id, **_pick(fields, TEAM_MEMBER_FIELDS)
        )
        self.team_members[record.id] = record
        return record

    def list_team_members(self, project_id: str) -> list[TeamMemberRecord]:
        return self._list(self.team_members, project_id)

    def update_team_member(
        self, member_id: str, fields: dict
    ) -> Optional[TeamMemberRecord]:
        return self._update(self.team_members, member_id, fields, TEAM_MEMBER_FIELDS)

    def delete_team_member(self, member_id: str) -> bool:
        return self.team_members.pop(member_id, None) is not None

    def create_goal(self, project_id: str, fields: dict) -> GoalRecord:
        record = GoalRecord(
            id=_new_id(), project_id=project_id, **_pick(fields, GOAL_FIELDS)
        )
        self.goals[record.id] = record
        return record

    def list_goals(self, project_id: str) -> list[GoalRecord]:
        return self._list(self.goals, project_id)

    def update_goal(self, goal_id: str, fields: dict) -> Optional[GoalRecord]:
        return self._update(self.goals, goal_id, fields, GOAL_FIELDS)

    def delete_goal(self, goal_id: str) -> bool:
        return self.goals.pop(goal_id, None) is not None


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            # Snapshot reads run on worker threads.
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url:
                # One shared connection, otherwise each thread sees its own empty DB.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _add(self, row):
        with self.Session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.to_record()

    def _update(self, row_cls, item_id: str, values: dict):
        with self.Session() as session:
            row = session.get(row_cls, item_id)
            if not row:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return row.to_record()

    def _delete(self, row_cls, item_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(delete(row_cls).where(row_cls.id == item_id))
            session.commit()
            return bool(result.rowcount)

    def _list(self, row_cls, project_id: str) -> list:
        with self.Session() as session:
            stmt = select(row_cls).where(row_cls.project_id == project_id)
            return [row.to_record() for row in session.execute(stmt).scalars()]

    def create_project(self, fields: dict) -> ProjectRecord:
        now = utcnow()
        values = {
            "description": "",
            "status": ProjectStatus.PLANNING.value,
            "start_date": "",
            "technology_stack": [],
            "repo_link": "",
            "live_link": "",
            "dev_notes": "",
        }
        values.update(_pick(fields, PROJECT_FIELDS))
        return self._add(
            ProjectRow(id=_new_id(), created_at=now, updated_at=now, **values)
        )

    def get_project(self, project_id: str) -> Optional[ProjectRecord]:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            return row.to_record() if row else None

    def list_projects(self) -> list[ProjectRecord]:
        with self.Session() as session:
            stmt = select(ProjectRow).order_by(ProjectRow.updated_at.asc())
            return [row.to_record() for row in session.execute(stmt).scalars()]

    def update_project(self, project_id: str, fields: dict) -> Optional[ProjectRecord]:
        values = _pick(fields, PROJECT_FIELDS)
        values["updated_at"] = utcnow()
        return self._update(ProjectRow, project_id, values)

    def delete_project(self, project_id: str) -> bool:
        with self.Session() as session:
            for row_cls in (IssueRow, CredentialRow, TeamMemberRow, GoalRow):
                session.execute(delete(row_cls).where(row_cls.project_id == project_id))
            result = session.execute(
                delete(ProjectRow).where(ProjectRow.id == project_id)
            )
            session.commit()
            return bool(result.rowcount)

    def create_issue(self, project_id: str, fields: dict) -> IssueRecord:
        values = {
            "description": "",
            "priority": IssuePriority.MEDIUM.value,
            "status": IssueStatus.OPEN.value,
        }
        values.update(_pick(fields, ISSUE_FIELDS))
        return self._add(
            IssueRow(
                id=_new_id(), project_id=project_id, created_at=utcnow(), **values
            )
        )

    def list_issues(self, project_id: str) -> list[IssueRecord]:
        return self._list(IssueRow, project_id)

    def update_issue(self, issue_id: str, fields: dict) -> Optional[IssueRecord]:
        return self._update(IssueRow, issue_id, _pick(fields, ISSUE_FIELDS))

    def delete_issue(self, issue_id: str) -> bool:
        return self._delete(IssueRow, issue_id)

    def create_credential(self, project_id: str, fields: dict) -> CredentialRecord:
        return self._add(
            CredentialRow(
                id=_new_id(), project_id=project_id, **_pick(fields, CREDENTIAL_FIELDS)
            )
        )

    def list_credentials(self, project_id: str) -> list[CredentialRecord]:
        return self._list(CredentialRow, project_id)

    def update_credential(
        self, credential_id: str, fields: dict
    ) -> Optional[CredentialRecord]:
        return self._update(
            CredentialRow, credential_id, _pick(fields, CREDENTIAL_FIELDS)
        )

    def delete_credential(self, credential_id: str) -> bool:
        return self._delete(CredentialRow, credential_id)

    def create_team_member(self, project_id: str, fields: dict) -> TeamMemberRecord:
        values = {"contact": ""}
        values.update(_pick(fields, TEAM_MEMBER_FIELDS))
        return self._add(
            TeamMemberRow(id=_new_id(), project_id=project_id, **values)
        )

    def list_team_members(self, project_id: str) -> list[TeamMemberRecord]:
        return self._list(TeamMemberRow, project_id)

    def update_team_member(
        self, member_id: str, fields: dict
    ) -> Optional[TeamMemberRecord]:
        return self._update(TeamMemberRow, member_id, _pick(fields, TEAM_MEMBER_FIELDS))

    def delete_team_member(self, member_id: str) -> bool:
        return self._delete(TeamMemberRow, member_id)

    def create_goal(self, project_id: str, fields: dict) -> GoalRecord:
        values = {"completed": False}
        values.update(_pick(fields, GOAL_FIELDS))
        return self._add(GoalRow(id=_new_id(), project_id=project_id, **values))

    def list_goals(self, project_id: str) -> list[GoalRecord]:
        return self._list(GoalRow, project_id)

    def update_goal(self, goal_id: str, fields: dict) -> Optional[GoalRecord]:
        return self._update(GoalRow, goal_id, _pick(fields, GOAL_FIELDS))

    def delete_goal(self, goal_id: str) -> bool:
        return self._delete(GoalRow, goal_id)


Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    project_name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default=ProjectStatus.PLANNING.value)
    start_date = Column(String, nullable=False, default="")
    technology_stack = Column(JSON, nullable=False, default=list)
    repo_link = Column(Text, nullable=False, default="")
    live_link = Column(Text, nullable=False, default="")
    dev_notes = Column(Text, nullable=True, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def to_record(self) -> ProjectRecord:
        return ProjectRecord(
            id=self.id,
            project_name=self.project_name,
            description=self.description,
            status=self.status,
            start_date=self.start_date,
            technology_stack=list(self.technology_stack or []),
            repo_link=self.repo_link,
            live_link=self.live_link,
            dev_notes=self.dev_notes or "",
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class IssueRow(Base):
    __tablename__ = "issues"

    id = Column(String, primary_key=True)
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String, nullable=False, default=IssuePriority.MEDIUM.value)
    status = Column(String, nullable=False, default=IssueStatus.OPEN.value)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def to_record(self) -> IssueRecord:
        return IssueRecord(
            id=self.id,
            project_id=self.project_id,
            title=self.title,
            description=self.description,
            priority=self.priority,
            status=self.status,
            created_at=self.created_at,
        )


class CredentialRow(Base):
    __tablename__ = "credentials"

    id = Column(String, primary_key=True)
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key = Column(Text, nullable=False)
    value = Column(Text, nullable=False)

    def to_record(self) -> CredentialRecord:
        return CredentialRecord(
            id=self.id, project_id=self.project_id, key=self.key, value=self.value
        )


class TeamMemberRow(Base):
    __tablename__ = "team_members"

    id = Column(String, primary_key=True)
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False)
    contact = Column(Text, nullable=False, default="")

    def to_record(self) -> TeamMemberRecord:
        return TeamMemberRecord(
            id=self.id,
            project_id=self.project_id,
            name=self.name,
            role=self.role,
            contact=self.contact,
        )


class GoalRow(Base):
    __tablename__ = "goals"

    id = Column(String, primary_key=True)
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)

    def to_record(self) -> GoalRecord:
        return GoalRecord(
            id=self.id,
            project_id=self.project_id,
            text=self.text,
            completed=bool(self.completed),
        )
