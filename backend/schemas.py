from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime, date
from typing import Optional, List, Dict, Union


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def _blank_to_none(value):
    # HTML forms post "" for cleared date / id fields
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =========================
# 🔹 USER SCHEMAS
# =========================

class UserBrief(CamelModel):
    id: int
    name: str
    email: str
    role: str


class UserCreate(CamelModel):
    name: str
    email: EmailStr
    password: str
    role: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class ManagerAssign(CamelModel):
    """Payload for reassigning an employee's manager; null detaches."""
    manager_id: Optional[int] = None


class UserResponse(UserBrief):
    manager_id: Optional[int] = None
    created_at: datetime


class TeamBrief(CamelModel):
    id: int
    name: str
    leader_id: Optional[int] = None


class UserWithTeams(UserResponse):
    manager: Optional[UserBrief] = None
    teams: List[TeamBrief] = []


class LoginResponse(CamelModel):
    session_token: str
    user: UserResponse


# =========================
# 🔹 PROJECT SCHEMAS
# =========================

class ProjectCreate(CamelModel):
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    status: Optional[str] = None

    @field_validator("end_date", "status", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class ProjectUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None

    @field_validator("start_date", "end_date", "status", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class ProjectBrief(CamelModel):
    id: int
    name: str
    status: str


class ProjectResponse(ProjectBrief):
    description: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    creator_id: int
    created_at: datetime
    updated_at: datetime
    teams: List[TeamBrief] = []


class ProjectTemplate(CamelModel):
    """Defaults for the new-project form."""
    statuses: List[str]
    default_status: str
    start_date: date


# =========================
# 🔹 TEAM SCHEMAS
# =========================

class TeamCreate(CamelModel):
    name: str
    description: Optional[str] = None
    project_ids: List[int]
    leader_id: int


class TeamEdit(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    leader_id: Optional[int] = None

    @field_validator("leader_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class TeamMemberAdd(CamelModel):
    user_id: int


class TeamMemberResponse(CamelModel):
    id: int
    team_id: int
    user_id: int
    joined_at: datetime
    user: UserBrief


class TeamResponse(TeamBrief):
    description: Optional[str] = None
    creator_id: int
    created_at: datetime
    updated_at: datetime
    leader: Optional[UserBrief] = None
    members: List[TeamMemberResponse] = []
    projects: List[ProjectBrief] = []


class TeamPermissions(CamelModel):
    is_leader: bool
    is_head: bool
    is_manager: bool
    is_member: bool
    can_manage_tasks: bool


class TeamTaskStats(CamelModel):
    total: int
    completed: int
    pending: int
    in_progress: int
    overdue: int
    high_priority: int


class TeamOverviewItem(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    leader_id: Optional[int] = None
    leader: Optional[UserBrief] = None
    projects: List[ProjectBrief] = []
    member_count: int
    member_roles: Dict[str, int]
    task_stats: TeamTaskStats
    completion_percentage: int
    recent_activity: str
    is_user_leader: bool
    is_user_member: bool
    created_at: datetime
    updated_at: datetime


class TeamOverviewSummary(CamelModel):
    total_teams: int
    teams_as_leader: int
    teams_as_member: int
    total_tasks: int
    total_completed_tasks: int
    total_overdue_tasks: int
    average_completion_rate: int


class TeamOverview(CamelModel):
    teams: List[TeamOverviewItem]
    summary: TeamOverviewSummary


class UpdateRequestCreate(CamelModel):
    message: Optional[str] = None
    member_id: Optional[int] = None

    @field_validator("member_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


# =========================
# 🔹 TEAM UPDATE SCHEMAS
# =========================

class TeamUpdateCreate(CamelModel):
    content: str
    team_id: int
    task_id: Optional[int] = None

    @field_validator("task_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class TeamUpdateEdit(CamelModel):
    content: str


class TeamUpdateResponse(CamelModel):
    id: int
    content: str
    team_id: int
    task_id: Optional[int] = None
    member_id: int
    author: UserBrief
    created_at: datetime
    updated_at: datetime


# =========================
# 🔹 TASK SCHEMAS
# =========================

class TaskCreate(CamelModel):
    title: str
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    assignee_id: Optional[int] = None
    team_id: Optional[int] = None

    @field_validator("priority", "due_date", "assignee_id", "team_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class TaskPatch(CamelModel):
    """Quick update from task lists. Employees may only send status."""
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee_id: Optional[int] = None

    @field_validator("status", "priority", "assignee_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class TaskEdit(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    assignee_id: Optional[int] = None
    team_id: Optional[int] = None

    @field_validator("priority", "due_date", "assignee_id", "team_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class IssueBrief(CamelModel):
    id: int
    title: str
    status: str
    creator_id: int


class TaskResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[date] = None
    assignee_id: Optional[int] = None
    creator_id: int
    team_id: Optional[int] = None
    task_origin: str
    created_at: datetime
    updated_at: datetime
    assignee: Optional[UserBrief] = None
    creator: UserBrief
    team: Optional[TeamBrief] = None
    issues: List[IssueBrief] = []


# =========================
# 🔹 ISSUE SCHEMAS
# =========================

class IssueCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    task_id: Optional[int] = None

    @field_validator("task_id", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)


class IssuePatch(CamelModel):
    status: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


class TaskBrief(CamelModel):
    id: int
    title: str
    status: str


class IssueResponse(CamelModel):
    id: int
    title: str
    description: str
    status: str
    creator_id: int
    task_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    creator: UserBrief
    task: Optional[TaskBrief] = None


# =========================
# 🔹 NOTIFICATION SCHEMAS
# =========================

class NotificationResponse(CamelModel):
    id: int
    type: str
    message: str
    user_id: int
    is_read: bool
    created_at: datetime


class UpdateRequestNotification(NotificationResponse):
    user: UserBrief


class UpdateRequestResult(CamelModel):
    message: str
    notification: Optional[NotificationResponse] = None
    notifications_count: int


# =========================
# 🔹 REPORT SCHEMAS
# =========================

class ReportRequest(CamelModel):
    user_id: Optional[int] = None
    # plain dates cover whole days, timestamps are taken as exact instants
    start_date: Optional[Union[date, datetime]] = Field(default=None, union_mode="left_to_right")
    end_date: Optional[Union[date, datetime]] = Field(default=None, union_mode="left_to_right")

    @field_validator("user_id", "start_date", "end_date", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        return _blank_to_none(value)
