"""
Pydantic schemas for the dashboard API.

Request bodies use the frontend's camelCase keys; ``model_dump()`` yields the
snake_case names the database layer expects.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from opsboard.types import IssuePriority, IssueStatus, ProjectStatus


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_fields(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True, mode="json")


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class AuthStatusResponse(BaseModel):
    isAuthenticated: bool


class MessageResponse(BaseModel):
    success: bool
    message: str


class SuccessResponse(BaseModel):
    success: Literal[True] = True


class ProjectCreate(_Payload):
    project_name: str = Field(..., alias="projectName", min_length=1)
    description: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    start_date: str = Field("", alias="startDate")
    technology_stack: list[str] = Field(default_factory=list, alias="technologyStack")
    repo_link: str = Field("", alias="repoLink")
    live_link: str = Field("", alias="liveLink")
    dev_notes: str = Field("", alias="devNotes")

    def to_fields(self) -> dict:
        # Defaults count as provided when creating.
        return self.model_dump(mode="json")


class ProjectUpdate(_Payload):
    project_name: Optional[str] = Field(None, alias="projectName", min_length=1)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    start_date: Optional[str] = Field(None, alias="startDate")
    technology_stack: Optional[list[str]] = Field(None, alias="technologyStack")
    repo_link: Optional[str] = Field(None, alias="repoLink")
    live_link: Optional[str] = Field(None, alias="liveLink")
    dev_notes: Optional[str] = Field(None, alias="devNotes")


class IssueCreate(_Payload):
    title: str = Field(..., min_length=1)
    description: str = ""
    priority: IssuePriority = IssuePriority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class IssueUpdate(_Payload):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    priority: Optional[IssuePriority] = None
    status: Optional[IssueStatus] = None


class CredentialCreate(_Payload):
    key: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class CredentialUpdate(_Payload):
    key: Optional[str] = Field(None, min_length=1)
    value: Optional[str] = Field(None, min_length=1)


class TeamMemberCreate(_Payload):
    name: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    contact: str = ""

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class TeamMemberUpdate(_Payload):
    name: Optional[str] = Field(None, min_length=1)
    role: Optional[str] = Field(None, min_length=1)
    contact: Optional[str] = None


class GoalCreate(_Payload):
    text: str = Field(..., min_length=1)
    completed: bool = False

    def to_fields(self) -> dict:
        return self.model_dump(mode="json")


class GoalUpdate(_Payload):
    text: Optional[str] = Field(None, min_length=1)
    completed: Optional[bool] = None


class BackupToDriveRequest(BaseModel):
    projectId: Optional[str] = None


class BackupSummary(BaseModel):
    totalIssues: int
    totalTeamMembers: int
    totalGoals: int
    openIssues: int
    completedGoals: int


class BackupToDriveResponse(BaseModel):
    success: bool
    fileId: str
    fileName: str
    webViewLink: Optional[str] = None
    backupSummary: BackupSummary


class ListBackupsResponse(BaseModel):
    backups: list[dict]


class UploadBackupResponse(BaseModel):
    success: bool
    file: dict
