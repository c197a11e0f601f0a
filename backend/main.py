from fastapi import FastAPI, Depends, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from logging.handlers import RotatingFileHandler
import os

import models
import schemas
import crud
import auth
import sessions
import reports
import config

from database import engine, get_db
from models import User
from policy import Action

# ---------------------------------------------------------
# LOGGING CONFIGURATION
# ---------------------------------------------------------

# Create logs directory if it doesn't exist
os.makedirs(config.LOG_DIR, exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        # File handler with rotation
        RotatingFileHandler(
            config.LOG_FILE,
            maxBytes=config.LOG_MAX_BYTES,
            backupCount=config.LOG_BACKUP_COUNT
        ),
        # Console handler for development
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# CREATE DATABASE TABLES
# ---------------------------------------------------------
models.Base.metadata.create_all(bind=engine)
logger.info("Database tables created successfully")

# ---------------------------------------------------------
# FASTAPI APP INIT
# ---------------------------------------------------------
app = FastAPI(
    title=config.APP_NAME,
    description="Role-based project, team, task and issue tracking",
    version=config.APP_VERSION
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("FastAPI application initialized")


def _internal_error(message: str, exc: Exception):
    logger.error(f"{message}: {str(exc)}")
    return HTTPException(status_code=500, detail="Internal server error")


# ---------------------------------------------------------
# AUTH ROUTES
# ---------------------------------------------------------

@app.post("/login", response_model=schemas.LoginResponse)
def login(user_login: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    User login with password verification.
    Returns session token and user info on success.
    """
    try:
        logger.info(f"Login attempt for user: {user_login.email}")
        session_token, user = auth.login_user(db, user_login.email, user_login.password)
        logger.info(f"Login successful for user: {user_login.email}")
        return schemas.LoginResponse(
            session_token=session_token,
            user=schemas.UserResponse.model_validate(user),
        )
    except HTTPException as e:
        logger.warning(f"Login failed for user: {user_login.email} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Unexpected error during login", e)


@app.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    """
    End the caller's session.
    """
    try:
        return auth.logout_user(db, sessions.get_session_token(request))
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error during logout", e)


@app.get("/users/me", response_model=schemas.UserResponse)
def read_current_user(current_user: User = Depends(auth.get_current_user)):
    """
    Identity of the signed-in user.
    """
    return current_user


# ---------------------------------------------------------
# USER ROUTES
# ---------------------------------------------------------

@app.post("/users", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user: schemas.UserCreate,
    current_user: Optional[User] = Depends(auth.get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Sign up, or create an account on behalf of someone else.
    The first account ever created becomes HEAD.
    """
    try:
        return crud.create_user(db, user, current_user)
    except HTTPException as e:
        logger.warning(f"User creation failed for {user.email} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Error creating user", e)


@app.get("/users", response_model=List[schemas.UserWithTeams])
def list_users(
    include_teams: bool = Query(False, alias="includeTeams"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    HEAD: every user. MANAGER: direct reports only.
    """
    try:
        return crud.list_users(db, current_user, include_teams)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching users", e)


@app.get("/users/{user_id}", response_model=schemas.UserWithTeams)
def get_user(
    user_id: int,
    include_teams: bool = Query(False, alias="includeTeams"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_user(db, user_id, current_user, include_teams)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching user {user_id}", e)


@app.patch("/users/{user_id}/manager", response_model=schemas.UserResponse)
def assign_manager(
    user_id: int,
    payload: schemas.ManagerAssign,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Reassign an employee to another manager (HEAD only).
    """
    try:
        return crud.assign_manager(db, user_id, payload.manager_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error assigning manager for user {user_id}", e)


# ---------------------------------------------------------
# PROJECT ROUTES
# ---------------------------------------------------------

@app.get("/projects", response_model=List[schemas.ProjectResponse])
def list_projects(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.list_projects(db, current_user, status_filter)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching projects", e)


@app.get("/projects/new", response_model=schemas.ProjectTemplate)
def new_project_template(current_user: User = Depends(auth.get_current_user)):
    """
    Defaults for the new-project form (HEAD only).
    """
    try:
        return crud.project_template(current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error preparing project template", e)


@app.post("/projects", response_model=schemas.ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    project: schemas.ProjectCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a new project (HEAD only).
    """
    try:
        return crud.create_project(db, project, current_user)
    except HTTPException as e:
        logger.warning(f"Project creation failed for user {current_user.id} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Error creating project", e)


@app.get("/projects/{project_id}", response_model=schemas.ProjectResponse)
def get_project(
    project_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_project(db, project_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching project {project_id}", e)


@app.put("/projects/{project_id}", response_model=schemas.ProjectResponse)
def update_project(
    project_id: int,
    changes: schemas.ProjectUpdate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.update_project(db, project_id, changes, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error updating project {project_id}", e)


@app.delete("/projects/{project_id}")
def delete_project(
    project_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.delete_project(db, project_id, current_user)
        return {"message": "Project deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error deleting project {project_id}", e)


# ---------------------------------------------------------
# TEAM ROUTES
# ---------------------------------------------------------

@app.get("/teams", response_model=List[schemas.TeamResponse])
def list_teams(
    project_id: Optional[int] = Query(None, alias="projectId"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    HEAD sees every team; everyone else only teams they lead or belong to.
    """
    try:
        return crud.list_teams(db, current_user, project_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching teams", e)


@app.get("/teams/overview", response_model=schemas.TeamOverview)
def teams_overview(
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Dashboard statistics for the caller's teams.
    """
    try:
        return crud.teams_overview(db, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching teams overview", e)


@app.post("/teams", response_model=schemas.TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(
    team: schemas.TeamCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a team under one or more projects (HEAD only).
    """
    try:
        return crud.create_team(db, team, current_user)
    except HTTPException as e:
        logger.warning(f"Team creation failed for user {current_user.id} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Error creating team", e)


@app.get("/teams/{team_id}", response_model=schemas.TeamResponse)
def get_team(
    team_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_team(db, team_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching team {team_id}", e)


@app.put("/teams/{team_id}", response_model=schemas.TeamResponse)
def update_team(
    team_id: int,
    changes: schemas.TeamEdit,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update team details. Only HEAD may change the leader.
    """
    try:
        return crud.update_team(db, team_id, changes, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error updating team {team_id}", e)


@app.delete("/teams/{team_id}")
def delete_team(
    team_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.delete_team(db, team_id, current_user)
        return {"message": "Team deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error deleting team {team_id}", e)


@app.get("/teams/{team_id}/permissions", response_model=schemas.TeamPermissions)
def get_team_permissions(
    team_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    The caller's standing in a team, used by the dashboard to show or hide controls.
    """
    try:
        return crud.team_permissions(db, team_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching permissions for team {team_id}", e)


@app.get("/teams/{team_id}/members", response_model=List[schemas.TeamMemberResponse])
def list_team_members(
    team_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.list_team_members(db, team_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching members of team {team_id}", e)


@app.post(
    "/teams/{team_id}/members",
    response_model=schemas.TeamMemberResponse,
    status_code=status.HTTP_201_CREATED
)
def add_team_member(
    team_id: int,
    payload: schemas.TeamMemberAdd,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.add_team_member(db, team_id, payload.user_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error adding member to team {team_id}", e)


@app.delete("/teams/{team_id}/members/{user_id}")
def remove_team_member(
    team_id: int,
    user_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.remove_team_member(db, team_id, user_id, current_user)
        return {"message": "Member removed successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error removing member {user_id} from team {team_id}", e)


@app.post(
    "/teams/{team_id}/update-requests",
    response_model=schemas.UpdateRequestResult,
    status_code=status.HTTP_201_CREATED
)
def request_team_updates(
    team_id: int,
    payload: schemas.UpdateRequestCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Ask one member (memberId) or the whole team for a progress update.
    """
    try:
        return crud.request_updates(db, team_id, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error requesting updates for team {team_id}", e)


@app.get("/teams/{team_id}/update-requests", response_model=List[schemas.UpdateRequestNotification])
def list_update_requests(
    team_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.list_update_requests(db, team_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching update requests for team {team_id}", e)


# ---------------------------------------------------------
# TEAM UPDATE ROUTES
# ---------------------------------------------------------

@app.get("/team-updates", response_model=List[schemas.TeamUpdateResponse])
def list_team_updates(
    team_id: Optional[int] = Query(None, alias="teamId"),
    task_id: Optional[int] = Query(None, alias="taskId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.list_team_updates(db, current_user, team_id, task_id, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching team updates", e)


@app.post("/team-updates", response_model=schemas.TeamUpdateResponse, status_code=status.HTTP_201_CREATED)
def create_team_update(
    payload: schemas.TeamUpdateCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Post a progress note to a team the caller belongs to.
    """
    try:
        return crud.create_team_update(db, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error creating team update", e)


@app.get("/team-updates/{update_id}", response_model=schemas.TeamUpdateResponse)
def get_team_update(
    update_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_team_update(db, update_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching team update {update_id}", e)


@app.put("/team-updates/{update_id}", response_model=schemas.TeamUpdateResponse)
def edit_team_update(
    update_id: int,
    payload: schemas.TeamUpdateEdit,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.edit_team_update(db, update_id, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error editing team update {update_id}", e)


@app.delete("/team-updates/{update_id}")
def delete_team_update(
    update_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.delete_team_update(db, update_id, current_user)
        return {"message": "Update deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error deleting team update {update_id}", e)


# ---------------------------------------------------------
# TASK ROUTES
# ---------------------------------------------------------

@app.post("/tasks", response_model=schemas.TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a new task. Employees cannot create tasks.
    """
    try:
        return crud.create_task(db, task, current_user)
    except HTTPException as e:
        logger.warning(f"Task creation failed for user {current_user.id} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Error creating task", e)


@app.get("/tasks", response_model=List[schemas.TaskResponse])
def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Tasks visible to the caller, or a given user's active tasks (userId).
    """
    try:
        return crud.list_tasks(db, current_user, status_filter, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching tasks", e)


@app.get("/tasks/{task_id}", response_model=schemas.TaskResponse)
def get_task(
    task_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_task(db, task_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching task {task_id}", e)


@app.patch("/tasks/{task_id}", response_model=schemas.TaskResponse)
def patch_task(
    task_id: int,
    changes: schemas.TaskPatch,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update status (anyone with access) or priority / assignee (not employees).
    """
    try:
        return crud.patch_task(db, task_id, changes, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error updating task {task_id}", e)


@app.put("/tasks/{task_id}", response_model=schemas.TaskResponse)
def edit_task(
    task_id: int,
    changes: schemas.TaskEdit,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.edit_task(db, task_id, changes, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error editing task {task_id}", e)


@app.delete("/tasks/{task_id}")
def delete_task(
    task_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.delete_task(db, task_id, current_user)
        return {"message": "Task deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error deleting task {task_id}", e)


# ---------------------------------------------------------
# ISSUE ROUTES
# ---------------------------------------------------------

@app.post("/issues", response_model=schemas.IssueResponse, status_code=status.HTTP_201_CREATED)
def create_issue(
    payload: schemas.IssueCreate,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.create_issue(db, payload, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error creating issue", e)


@app.get("/issues", response_model=List[schemas.IssueResponse])
def list_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Issues visible to the caller, or a given user's open issues (userId).
    """
    try:
        return crud.list_issues(db, current_user, status_filter, user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error fetching issues", e)


@app.get("/issues/{issue_id}", response_model=schemas.IssueResponse)
def get_issue(
    issue_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.get_issue(db, issue_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error fetching issue {issue_id}", e)


@app.patch("/issues/{issue_id}", response_model=schemas.IssueResponse)
def patch_issue(
    issue_id: int,
    changes: schemas.IssuePatch,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.patch_issue(db, issue_id, changes, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error updating issue {issue_id}", e)


@app.delete("/issues/{issue_id}")
def delete_issue(
    issue_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        crud.delete_issue(db, issue_id, current_user)
        return {"message": "Issue deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error deleting issue {issue_id}", e)


# ---------------------------------------------------------
# NOTIFICATION ROUTES
# ---------------------------------------------------------

@app.get("/notifications", response_model=List[schemas.NotificationResponse])
def list_notifications(
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.list_notifications(db, current_user)
    except Exception as e:
        raise _internal_error("Error fetching notifications", e)


@app.post("/notifications/{notification_id}/read", response_model=schemas.NotificationResponse)
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return crud.mark_notification_read(db, notification_id, current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error(f"Error marking notification {notification_id} read", e)


# ---------------------------------------------------------
# REPORT ROUTES
# ---------------------------------------------------------

@app.post("/reports/download")
def download_report(
    payload: schemas.ReportRequest,
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    CSV of a user's tasks and issues for a date range.
    HEAD for anyone, MANAGER for direct reports only.
    """
    try:
        filename, content = reports.build_user_report(db, payload, current_user)
        return Response(
            content=content,
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{filename}"',
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
                "Expires": "0",
            },
        )
    except HTTPException as e:
        logger.warning(f"Report download refused for user {current_user.id} - {e.detail}")
        raise
    except Exception as e:
        raise _internal_error("Error generating report", e)


# ---------------------------------------------------------
# HEALTH CHECK
# ---------------------------------------------------------

@app.get("/")
def root(db: Session = Depends(get_db)):
    """
    Health check endpoint to verify the app is running.
    """
    logger.info("Health check endpoint accessed")
    return {
        "message": f"{config.APP_NAME} is running",
        "status": "operational",
        "version": config.APP_VERSION,
        "activeSessions": sessions.get_active_sessions_count(db)
    }


# ---------------------------------------------------------
# SESSION MONITORING (HEAD)
# ---------------------------------------------------------

@app.get("/sessions/cleanup")
def cleanup_sessions(
    current_user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db)
):
    """
    Manually trigger cleanup of expired sessions.
    Useful for monitoring and maintenance.
    """
    try:
        auth.authorize(current_user, Action.SESSIONS_CLEANUP)
        count = sessions.cleanup_expired_sessions(db)
        logger.info(f"Session cleanup completed: {count} sessions removed")
        return {
            "message": "Session cleanup completed",
            "expiredSessionsRemoved": count,
            "activeSessions": sessions.get_active_sessions_count(db)
        }
    except HTTPException:
        raise
    except Exception as e:
        raise _internal_error("Error during session cleanup", e)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.DEFAULT_HOST, port=config.DEFAULT_PORT)
