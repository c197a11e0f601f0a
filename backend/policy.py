"""
Permission Evaluator

Every endpoint asks the same question: can this caller perform this action
on this resource? The answer depends only on the caller's role and on a few
relationship facts about the resource (who leads the team, who manages the
target user, who created the task...). The store layer gathers those facts,
this module decides.

Nothing here touches the database, so every rule can be exercised directly:

    decision = evaluate(Caller(id=7, role="MANAGER"), Action.REPORT_DOWNLOAD,
                        Facts(target_manager_id=7))
    decision.allowed  # True
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

import config


# ------------------------------------------------------------------
# Inputs / outputs
# ------------------------------------------------------------------

class Action(str, Enum):
    # Projects
    PROJECT_CREATE = "project:create"
    PROJECT_LIST = "project:list"
    PROJECT_VIEW = "project:view"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"

    # Reports
    REPORT_DOWNLOAD = "report:download"

    # Teams
    TEAM_LIST = "team:list"
    TEAM_VIEW = "team:view"
    TEAM_PERMISSIONS = "team:permissions"
    TEAM_CREATE = "team:create"
    TEAM_UPDATE = "team:update"
    TEAM_CHANGE_LEADER = "team:change-leader"
    TEAM_DELETE = "team:delete"
    TEAM_MEMBERS_VIEW = "team:members:view"
    TEAM_MEMBERS_MANAGE = "team:members:manage"
    TEAM_REQUEST_UPDATES = "team:update-requests:create"
    TEAM_VIEW_UPDATE_REQUESTS = "team:update-requests:view"

    # Team updates
    TEAM_UPDATE_POST = "team-update:create"
    TEAM_UPDATE_VIEW = "team-update:view"
    TEAM_UPDATE_EDIT = "team-update:edit"
    TEAM_UPDATE_DELETE = "team-update:delete"

    # Users
    USER_LIST = "user:list"
    USER_VIEW = "user:view"
    USER_VIEW_WORK = "user:work:view"
    USER_CREATE = "user:create"
    USER_ASSIGN_MANAGER = "user:assign-manager"

    # Tasks
    TASK_CREATE = "task:create"
    TASK_ASSIGN = "task:assign"
    TASK_ASSIGN_TEAM = "task:assign-team"
    TASK_VIEW = "task:view"
    TASK_PATCH = "task:patch"
    TASK_EDIT = "task:edit"
    TASK_DELETE = "task:delete"

    # Issues
    ISSUE_VIEW = "issue:view"
    ISSUE_UPDATE = "issue:update"
    ISSUE_DELETE = "issue:delete"

    # Maintenance
    SESSIONS_CLEANUP = "sessions:cleanup"


# Capability names returned alongside a decision
CAP_SCOPE_ALL = "scope:all"
CAP_SCOPE_RELATED = "scope:related"
CAP_SCOPE_REPORTS = "scope:reports"
CAP_LEADER = "leader"
CAP_MEMBER = "member"
CAP_HEAD = "head"
CAP_MANAGER = "manager"
CAP_MANAGE_TASKS = "manage-tasks"
CAP_EDIT_FIELDS = "edit-fields"
CAP_BECOME_MANAGER = "become-manager"


@dataclass(frozen=True)
class Caller:
    id: int
    role: str

    @property
    def is_head(self) -> bool:
        return self.role == config.ROLE_HEAD

    @property
    def is_manager(self) -> bool:
        return self.role == config.ROLE_MANAGER

    @property
    def is_employee(self) -> bool:
        return self.role == config.ROLE_EMPLOYEE


@dataclass(frozen=True)
class Facts:
    """Relationship facts about the target resource. Unused fields stay None/empty."""

    # Target user (reports, user pages, manager reassignment)
    target_user_id: Optional[int] = None
    target_manager_id: Optional[int] = None
    requested_role: Optional[str] = None

    # Team context (the team itself, or the team a task belongs to)
    team_leader_id: Optional[int] = None
    team_member_ids: FrozenSet[int] = field(default_factory=frozenset)
    team_member_manager_ids: FrozenSet[int] = field(default_factory=frozenset)

    # Project context
    is_project_member: bool = False

    # Owned resources (tasks, issues, team updates)
    creator_id: Optional[int] = None
    assignee_id: Optional[int] = None
    assignee_manager_id: Optional[int] = None
    author_id: Optional[int] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def allow(*capabilities: str) -> Decision:
    return Decision(True, frozenset(capabilities))


def deny(reason: str) -> Decision:
    return Decision(False, frozenset(), reason)


# ------------------------------------------------------------------
# Relationship helpers
# ------------------------------------------------------------------

def _is_leader(caller: Caller, facts: Facts) -> bool:
    return facts.team_leader_id is not None and facts.team_leader_id == caller.id


def _is_member(caller: Caller, facts: Facts) -> bool:
    return caller.id in facts.team_member_ids


def _manages_target(caller: Caller, facts: Facts) -> bool:
    return caller.is_manager and facts.target_manager_id == caller.id


def _has_task_relation(caller: Caller, facts: Facts) -> bool:
    """Creator, assignee, manager of the assignee, or leader of the task's team."""
    return (
        facts.creator_id == caller.id
        or facts.assignee_id == caller.id
        or (facts.assignee_id is not None and facts.assignee_manager_id == caller.id)
        or _is_leader(caller, facts)
    )


# ------------------------------------------------------------------
# Project rules
# ------------------------------------------------------------------

def _head_only(message: str) -> Callable[[Caller, Facts], Decision]:
    def rule(caller: Caller, facts: Facts) -> Decision:
        return allow() if caller.is_head else deny(message)
    return rule


def _project_list(caller, facts):
    if caller.is_head or caller.is_manager:
        return allow()
    return deny("Forbidden")


def _project_view(caller, facts):
    if caller.is_head or caller.is_manager:
        return allow()
    if facts.is_project_member:
        return allow()
    return deny("Forbidden")


# ------------------------------------------------------------------
# Report rules
# ------------------------------------------------------------------

def _report_download(caller, facts):
    if caller.is_head:
        return allow()
    if caller.is_manager:
        if _manages_target(caller, facts):
            return allow()
        return deny("Access denied: You can only view reports of your direct reports")
    return deny("Permission denied")


# ------------------------------------------------------------------
# Team rules
# ------------------------------------------------------------------

def _team_list(caller, facts):
    if caller.is_head:
        return allow(CAP_SCOPE_ALL)
    return allow(CAP_SCOPE_RELATED)


def _team_view(caller, facts):
    if caller.is_head or _is_member(caller, facts) or _is_leader(caller, facts):
        return allow()
    if caller.is_manager and caller.id in facts.team_member_manager_ids:
        return allow()
    return deny("Forbidden: You are not a member of this team")


def _team_permissions(caller, facts):
    # Reports the caller's own standing; never refused to an authenticated caller.
    capabilities = set()
    if _is_leader(caller, facts):
        capabilities.add(CAP_LEADER)
    if caller.is_head:
        capabilities.add(CAP_HEAD)
    if caller.is_manager:
        capabilities.add(CAP_MANAGER)
    if _is_member(caller, facts):
        capabilities.add(CAP_MEMBER)
    if capabilities & {CAP_LEADER, CAP_HEAD, CAP_MANAGER}:
        capabilities.add(CAP_MANAGE_TASKS)
    return allow(*capabilities)


def _head_or_leader(message: str) -> Callable[[Caller, Facts], Decision]:
    def rule(caller: Caller, facts: Facts) -> Decision:
        if caller.is_head or _is_leader(caller, facts):
            return allow()
        return deny(message)
    return rule


def _team_members_view(caller, facts):
    if caller.is_head or caller.is_manager or _is_member(caller, facts):
        return allow()
    return deny("Forbidden: You are not a member of this team")


def _team_view_update_requests(caller, facts):
    if caller.is_head or _is_member(caller, facts):
        return allow()
    return deny("Access denied")


# ------------------------------------------------------------------
# Team update rules
# ------------------------------------------------------------------

def _team_update_post(caller, facts):
    if _is_member(caller, facts):
        return allow()
    return deny("You must be a member of this team to post updates")


def _team_update_view(caller, facts):
    if caller.is_head or caller.is_manager or _is_member(caller, facts):
        return allow()
    return deny("You do not have access to this team updates")


def _team_update_edit(caller, facts):
    if facts.author_id == caller.id:
        return allow()
    return deny("You can only modify your own updates")


def _team_update_delete(caller, facts):
    if caller.is_head or _is_leader(caller, facts) or facts.author_id == caller.id:
        return allow()
    return deny("You do not have permission to delete this update")


# ------------------------------------------------------------------
# User rules
# ------------------------------------------------------------------

def _user_list(caller, facts):
    if caller.is_head:
        return allow(CAP_SCOPE_ALL)
    if caller.is_manager:
        return allow(CAP_SCOPE_REPORTS)
    return deny("Forbidden")


def _user_view(caller, facts):
    if caller.is_head or facts.target_user_id == caller.id or _manages_target(caller, facts):
        return allow()
    return deny("Forbidden")


def _user_view_work(caller, facts):
    if caller.is_head or facts.target_user_id == caller.id:
        return allow()
    if _manages_target(caller, facts):
        return allow()
    return deny("Access denied")


def _user_create(caller, facts):
    role = facts.requested_role
    if role in (config.ROLE_MANAGER, config.ROLE_HEAD):
        if caller.is_head:
            return allow()
        return deny("Unauthorized to create managers")
    if caller.is_head:
        return allow()
    if caller.is_manager:
        # New employees created by a manager report to that manager
        return allow(CAP_BECOME_MANAGER)
    return deny("Unauthorized to create users")


# ------------------------------------------------------------------
# Task rules
# ------------------------------------------------------------------

def _task_create(caller, facts):
    if caller.is_employee:
        return deny("Employees cannot create tasks")
    return allow()


def _task_assign(caller, facts):
    if caller.is_head:
        return allow()
    if caller.is_manager and facts.target_manager_id == caller.id:
        return allow()
    return deny("Cannot assign tasks to users you do not manage")


def _task_assign_team(caller, facts):
    if caller.is_head:
        return allow()
    if caller.is_manager and _is_leader(caller, facts):
        return allow()
    return deny("Cannot assign tasks to teams you do not lead")


def _task_view(caller, facts):
    if caller.is_head:
        return allow()
    if caller.is_manager:
        if _has_task_relation(caller, facts):
            return allow()
        return deny("Access denied")
    if facts.assignee_id == caller.id or _is_member(caller, facts) or _is_leader(caller, facts):
        return allow()
    return deny("Access denied")


def _task_patch(caller, facts):
    decision = _task_view(caller, facts)
    if not decision:
        return decision
    if caller.is_employee:
        return allow()
    return allow(CAP_EDIT_FIELDS)


def _task_edit(caller, facts):
    if caller.is_employee:
        return deny("Employees cannot update tasks")
    if caller.is_head or _has_task_relation(caller, facts):
        return allow()
    return deny("Access denied")


def _task_delete(caller, facts):
    if caller.is_head:
        return allow()
    if caller.is_manager:
        if _has_task_relation(caller, facts):
            return allow()
        return deny("Access denied")
    if facts.assignee_id == caller.id:
        return allow()
    return deny("Access denied")


# ------------------------------------------------------------------
# Issue rules
# ------------------------------------------------------------------

def _issue_access(caller, facts):
    if caller.is_head or facts.creator_id == caller.id:
        return allow()
    if caller.is_manager and facts.target_manager_id == caller.id:
        return allow()
    return deny("Access denied")


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------

_RULES: Dict[Action, Callable[[Caller, Facts], Decision]] = {
    Action.PROJECT_CREATE: _head_only("Forbidden: Only HEAD can create projects"),
    Action.PROJECT_LIST: _project_list,
    Action.PROJECT_VIEW: _project_view,
    Action.PROJECT_UPDATE: _head_only("Forbidden: Only HEAD can update projects"),
    Action.PROJECT_DELETE: _head_only("Forbidden: Only HEAD can delete projects"),
    Action.REPORT_DOWNLOAD: _report_download,
    Action.TEAM_LIST: _team_list,
    Action.TEAM_VIEW: _team_view,
    Action.TEAM_PERMISSIONS: _team_permissions,
    Action.TEAM_CREATE: _head_only("Forbidden: Only HEAD can create teams"),
    Action.TEAM_UPDATE: _head_or_leader("Forbidden: Only HEAD or team leader can update team details"),
    Action.TEAM_CHANGE_LEADER: _head_only("Only HEAD can change team leader"),
    Action.TEAM_DELETE: _head_only("Forbidden: Only HEAD can delete teams"),
    Action.TEAM_MEMBERS_VIEW: _team_members_view,
    Action.TEAM_MEMBERS_MANAGE: _head_or_leader("Forbidden: Only HEAD or team leader can manage members"),
    Action.TEAM_REQUEST_UPDATES: _head_or_leader("Only team lead or HEAD can request updates"),
    Action.TEAM_VIEW_UPDATE_REQUESTS: _team_view_update_requests,
    Action.TEAM_UPDATE_POST: _team_update_post,
    Action.TEAM_UPDATE_VIEW: _team_update_view,
    Action.TEAM_UPDATE_EDIT: _team_update_edit,
    Action.TEAM_UPDATE_DELETE: _team_update_delete,
    Action.USER_LIST: _user_list,
    Action.USER_VIEW: _user_view,
    Action.USER_VIEW_WORK: _user_view_work,
    Action.USER_CREATE: _user_create,
    Action.USER_ASSIGN_MANAGER: _head_only("Unauthorized to assign managers"),
    Action.TASK_CREATE: _task_create,
    Action.TASK_ASSIGN: _task_assign,
    Action.TASK_ASSIGN_TEAM: _task_assign_team,
    Action.TASK_VIEW: _task_view,
    Action.TASK_PATCH: _task_patch,
    Action.TASK_EDIT: _task_edit,
    Action.TASK_DELETE: _task_delete,
    Action.ISSUE_VIEW: _issue_access,
    Action.ISSUE_UPDATE: _issue_access,
    Action.ISSUE_DELETE: _head_only("Access denied"),
    Action.SESSIONS_CLEANUP: _head_only("Forbidden"),
}


def evaluate(caller: Caller, action: Action, facts: Optional[Facts] = None) -> Decision:
    """
    Decide whether `caller` may perform `action` given the relationship `facts`.
    Unknown roles are denied everything.
    """
    if caller.role not in config.VALID_ROLES:
        return deny("Unknown role")
    rule = _RULES.get(action)
    if rule is None:
        raise ValueError(f"No rule registered for {action!r}")
    return rule(caller, facts or Facts())


def team_permission_flags(decision: Decision) -> dict:
    """Flatten a TEAM_PERMISSIONS decision into the dashboard flags."""
    caps = decision.capabilities
    return {
        "is_leader": CAP_LEADER in caps,
        "is_head": CAP_HEAD in caps,
        "is_manager": CAP_MANAGER in caps,
        "is_member": CAP_MEMBER in caps,
        "can_manage_tasks": CAP_MANAGE_TASKS in caps,
    }
