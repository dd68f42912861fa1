"""
HTTP routes for the dashboard API.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from opsboard.auth import SESSION_FLAG, CredentialVerifier, is_authenticated, require_auth
from opsboard.backups import BackupService
from opsboard.db import DbClient
from opsboard.dependencies import (
    get_backup_service,
    get_credential_verifier,
    get_db_client,
)
from opsboard.errors import NotFound, ProjectNotFound
from opsboard.schemas import (
    AuthStatusResponse,
    BackupToDriveRequest,
    BackupToDriveResponse,
    CredentialCreate,
    CredentialUpdate,
    GoalCreate,
    GoalUpdate,
    IssueCreate,
    IssueUpdate,
    ListBackupsResponse,
    LoginRequest,
    MessageResponse,
    ProjectCreate,
    ProjectUpdate,
    SuccessResponse,
    TeamMemberCreate,
    TeamMemberUpdate,
    UploadBackupResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()
protected = APIRouter(dependencies=[Depends(require_auth)])


def _existing_project(db: DbClient, project_id: str):
    project = db.get_project(project_id)
    if not project:
        raise ProjectNotFound(project_id)
    return project


def _found(record, what: str) -> dict:
    if record is None:
        raise NotFound(f"{what} not found")
    return record.as_dict()


def _content_disposition(name: str) -> str:
    # ASCII fallback for old clients, RFC 5987 form for the real name.
    fallback = name.replace('"', "").replace("\\", "").encode("ascii", "replace").decode("ascii")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


# Auth


@router.post("/auth/login", response_model=MessageResponse)
def login(
    payload: LoginRequest,
    request: Request,
    verifier: CredentialVerifier = Depends(get_credential_verifier),
):
    if not verifier.verify(payload.username, payload.password):
        return JSONResponse(status_code=401, content={"error": "Invalid credentials"})
    request.session[SESSION_FLAG] = True
    return MessageResponse(success=True, message="Logged in successfully")


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request):
    request.session.clear()
    return MessageResponse(success=True, message="Logged out successfully")


@router.get("/auth/status", response_model=AuthStatusResponse)
def auth_status(request: Request):
    return AuthStatusResponse(isAuthenticated=is_authenticated(request))


# Projects


@protected.get("/projects")
def list_projects(db: DbClient = Depends(get_db_client)):
    return [project.as_dict() for project in db.list_projects()]


@protected.get("/projects/{project_id}")
def get_project(project_id: str, db: DbClient = Depends(get_db_client)):
    return _existing_project(db, project_id).as_dict()


@protected.post("/projects")
def create_project(payload: ProjectCreate, db: DbClient = Depends(get_db_client)):
    return db.create_project(payload.to_fields()).as_dict()


@protected.put("/projects/{project_id}")
def update_project(
    project_id: str, payload: ProjectUpdate, db: DbClient = Depends(get_db_client)
):
    project = db.update_project(project_id, payload.to_fields())
    if not project:
        raise ProjectNotFound(project_id)
    return project.as_dict()


@protected.delete("/projects/{project_id}", response_model=SuccessResponse)
def delete_project(project_id: str, db: DbClient = Depends(get_db_client)):
    db.delete_project(project_id)
    return SuccessResponse()


# Issues


@protected.get("/projects/{project_id}/issues")
def list_issues(project_id: str, db: DbClient = Depends(get_db_client)):
    return [issue.as_dict() for issue in db.list_issues(project_id)]


@protected.post("/projects/{project_id}/issues")
def create_issue(
    project_id: str, payload: IssueCreate, db: DbClient = Depends(get_db_client)
):
    _existing_project(db, project_id)
    return db.create_issue(project_id, payload.to_fields()).as_dict()


@protected.put("/issues/{issue_id}")
def update_issue(
    issue_id: str, payload: IssueUpdate, db: DbClient = Depends(get_db_client)
):
    return _found(db.update_issue(issue_id, payload.to_fields()), "Issue")


@protected.delete("/issues/{issue_id}", response_model=SuccessResponse)
def delete_issue(issue_id: str, db: DbClient = Depends(get_db_client)):
    db.delete_issue(issue_id)
    return SuccessResponse()


# Credentials


@protected.get("/projects/{project_id}/credentials")
def list_credentials(project_id: str, db: DbClient = Depends(get_db_client)):
    return [credential.as_dict() for credential in db.list_credentials(project_id)]


@protected.post("/projects/{project_id}/credentials")
def create_credential(
    project_id: str, payload: CredentialCreate, db: DbClient = Depends(get_db_client)
):
    _existing_project(db, project_id)
    return db.create_credential(project_id, payload.to_fields()).as_dict()


@protected.put("/credentials/{credential_id}")
def update_credential(
    credential_id: str,
    payload: CredentialUpdate,
    db: DbClient = Depends(get_db_client),
):
    return _found(
        db.update_credential(credential_id, payload.to_fields()), "Credential"
    )


@protected.delete("/credentials/{credential_id}", response_model=SuccessResponse)
def delete_credential(credential_id: str, db: DbClient = Depends(get_db_client)):
    db.delete_credential(credential_id)
    return SuccessResponse()


# Team


@protected.get("/projects/{project_id}/team")
def list_team_members(project_id: str, db: DbClient = Depends(get_db_client)):
    return [member.as_dict() for member in db.list_team_members(project_id)]


@protected.post("/projects/{project_id}/team")
def create_team_member(
    project_id: str, payload: TeamMemberCreate, db: DbClient = Depends(get_db_client)
):
    _existing_project(db, project_id)
    return db.create_team_member(project_id, payload.to_fields()).as_dict()


@protected.put("/team/{member_id}")
def update_team_member(
    member_id: str, payload: TeamMemberUpdate, db: DbClient = Depends(get_db_client)
):
    return _found(
        db.update_team_member(member_id, payload.to_fields()), "Team member"
    )


@protected.delete("/team/{member_id}", response_model=SuccessResponse)
def delete_team_member(member_id: str, db: DbClient = Depends(get_db_client)):
    db.delete_team_member(member_id)
    return SuccessResponse()


# Goals


@protected.get("/projects/{project_id}/goals")
def list_goals(project_id: str, db: DbClient = Depends(get_db_client)):
    return [goal.as_dict() for goal in db.list_goals(project_id)]


@protected.post("/projects/{project_id}/goals")
def create_goal(
    project_id: str, payload: GoalCreate, db: DbClient = Depends(get_db_client)
):
    _existing_project(db, project_id)
    return db.create_goal(project_id, payload.to_fields()).as_dict()


@protected.put("/goals/{goal_id}")
def update_goal(goal_id: str, payload: GoalUpdate, db: DbClient = Depends(get_db_client)):
    return _found(db.update_goal(goal_id, payload.to_fields()), "Goal")


@protected.delete("/goals/{goal_id}", response_model=SuccessResponse)
def delete_goal(goal_id: str, db: DbClient = Depends(get_db_client)):
    db.delete_goal(goal_id)
    return SuccessResponse()


# Backups


@protected.get("/backups/{project_id}", response_model=ListBackupsResponse)
def list_backups(
    project_id: str, backups: BackupService = Depends(get_backup_service)
):
    artifacts = backups.list_backups(project_id)
    return ListBackupsResponse(backups=[artifact.as_dict() for artifact in artifacts])


@protected.post("/backups/upload", response_model=UploadBackupResponse)
async def upload_backup(
    file: UploadFile | None = File(None),
    projectId: str | None = Form(None),
    projectName: str | None = Form(None),
    backups: BackupService = Depends(get_backup_service),
):
    """
    Store an arbitrary file in the project's backup folder.

    ``projectName`` is accepted for compatibility with the dashboard form but
    ignored; the folder is always derived from the stored project.
    """
    data = await file.read() if file else None
    artifact = await run_in_threadpool(
        backups.upload_backup,
        projectId,
        file.filename if file else None,
        data,
        file.content_type if file else None,
    )
    return UploadBackupResponse(success=True, file=artifact.as_dict())


@protected.get("/backups/{project_id}/download/{file_id}")
def download_backup(
    project_id: str,
    file_id: str,
    backups: BackupService = Depends(get_backup_service),
):
    download = backups.open_download(project_id, file_id)
    return StreamingResponse(
        download.chunks,
        media_type=download.mime_type,
        headers={"Content-Disposition": _content_disposition(download.name)},
    )


@protected.delete("/backups/{project_id}/{file_id}", response_model=SuccessResponse)
def delete_backup(
    project_id: str,
    file_id: str,
    backups: BackupService = Depends(get_backup_service),
):
    backups.delete_backup(project_id, file_id)
    return SuccessResponse()


@protected.post("/backup-to-drive", response_model=BackupToDriveResponse)
def backup_to_drive(
    payload: BackupToDriveRequest,
    backups: BackupService = Depends(get_backup_service),
):
    result = backups.export_snapshot(payload.projectId)
    return BackupToDriveResponse(
        success=True,
        fileId=result.file_id,
        fileName=result.file_name,
        webViewLink=result.web_view_link,
        backupSummary=result.summary.as_dict(),
    )


router.include_router(protected)
