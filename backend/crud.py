from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_
from datetime import timedelta
from fastapi import HTTPException, status

from models import (
    User,
    Project,
    Team,
    TeamMember,
    Task,
    Issue,
    Notification,
    TeamUpdate,
    utcnow,
)
from policy import (
    Action,
    Facts,
    CAP_SCOPE_ALL,
    CAP_BECOME_MANAGER,
    CAP_EDIT_FIELDS,
    team_permission_flags,
)
import schemas
import config
import auth
import logging

# Configure logging
logger = logging.getLogger(__name__)


def _bad_request(detail: str):
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _not_found(detail: str):
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _require_choice(value: str, allowed, label: str):
    if value not in allowed:
        raise _bad_request(f"Invalid {label}: {value}. Must be one of {', '.join(allowed)}")


def _require_text(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise _bad_request(f"{label} is required")
    return value.strip()


# ------------------------------------------------------------------
# USER CRUD OPERATIONS
# ------------------------------------------------------------------

def get_user_by_email(db: Session, email: str):
    """
    Fetch user by email.
    Used for login & signup validation.
    """
    return db.query(User).filter(User.email == email.strip().lower()).first()


def get_user_by_id(db: Session, user_id: int):
    """
    Fetch user by ID.
    """
    return db.query(User).filter(User.id == user_id).first()


def user_facts(user: Optional[User], user_id: Optional[int] = None) -> Facts:
    """Facts about a target user; a missing user has no manager."""
    if user is None:
        return Facts(target_user_id=user_id)
    return Facts(target_user_id=user.id, target_manager_id=user.manager_id)


def teams_of_user(user: User):
    """Teams the user belongs to or leads, without duplicates."""
    teams = {m.team.id: m.team for m in user.team_memberships}
    for team in user.led_teams:
        teams.setdefault(team.id, team)
    return sorted(teams.values(), key=lambda t: t.id)


def _user_payload(user: User, include_teams: bool) -> schemas.UserWithTeams:
    payload = schemas.UserWithTeams.model_validate(user)
    if include_teams:
        payload.teams = [schemas.TeamBrief.model_validate(t) for t in teams_of_user(user)]
    return payload


def create_user(db: Session, user: schemas.UserCreate, current_user: Optional[User] = None):
    """
    Create a new user with hashed password.

    Role resolution:
    - the very first account is always HEAD
    - anonymous signups are always EMPLOYEE, whatever role they ask for
    - a signed-in caller asking for a role goes through the permission evaluator
    - a signed-in caller without a role creates an EMPLOYEE
    A MANAGER creating an EMPLOYEE becomes that employee's manager.
    """
    name = _require_text(user.name, "Name")
    if not user.password:
        raise _bad_request("Password is required")
    email = user.email.strip().lower()

    if get_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )

    if user.role is not None:
        _require_choice(user.role, config.VALID_ROLES, "role")

    manager_id = None
    if db.query(User).count() == 0:
        role = config.ROLE_HEAD
    elif current_user is None:
        role = config.ROLE_EMPLOYEE
    elif user.role is None:
        role = config.ROLE_EMPLOYEE
        if current_user.role == config.ROLE_MANAGER:
            manager_id = current_user.id
    else:
        decision = auth.authorize(current_user, Action.USER_CREATE, Facts(requested_role=user.role))
        role = user.role
        if role == config.ROLE_EMPLOYEE and CAP_BECOME_MANAGER in decision.capabilities:
            manager_id = current_user.id

    db_user = User(
        name=name,
        email=email,
        password=auth.hash_password(user.password),
        role=role,
        manager_id=manager_id,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"User created: {db_user.email} (ID: {db_user.id}, role: {db_user.role})")
    return db_user


def list_users(db: Session, current_user: User, include_teams: bool = False):
    """
    HEAD sees everyone, a MANAGER sees their direct reports.
    """
    decision = auth.authorize(current_user, Action.USER_LIST)

    query = db.query(User)
    if CAP_SCOPE_ALL not in decision.capabilities:
        query = query.filter(User.manager_id == current_user.id)

    return [_user_payload(u, include_teams) for u in query.order_by(User.name).all()]


def get_user(db: Session, user_id: int, current_user: User, include_teams: bool = False):
    user = get_user_by_id(db, user_id)
    if not user:
        raise _not_found("User not found")

    auth.authorize(current_user, Action.USER_VIEW, user_facts(user))
    return _user_payload(user, include_teams)


def assign_manager(db: Session, user_id: int, manager_id: Optional[int], current_user: User):
    """
    Reassign (or detach, with None) an employee's manager. HEAD only.
    """
    auth.authorize(current_user, Action.USER_ASSIGN_MANAGER)

    user = get_user_by_id(db, user_id)
    if not user:
        raise _not_found("User not found")
    if user.role != config.ROLE_EMPLOYEE:
        raise _bad_request("Can only assign managers to employees")

    if manager_id is not None:
        manager = get_user_by_id(db, manager_id)
        if not manager:
            raise _not_found("Manager not found")
        if manager.role != config.ROLE_MANAGER:
            raise _bad_request("Assigned manager must have MANAGER role")

    user.manager_id = manager_id
    db.commit()
    db.refresh(user)

    logger.info(f"Manager of user {user.id} set to {manager_id}")
    return user


def require_user_work_access(db: Session, user_id: int, current_user: User):
    """Gate for another user's active tasks / open issues."""
    target = get_user_by_id(db, user_id)
    auth.authorize(current_user, Action.USER_VIEW_WORK, user_facts(target, user_id))


# ------------------------------------------------------------------
# PROJECT CRUD OPERATIONS
# ------------------------------------------------------------------

def get_project_by_id(db: Session, project_id: int):
    return db.query(Project).filter(Project.id == project_id).first()


def _get_project_or_404(db: Session, project_id: int) -> Project:
    project = get_project_by_id(db, project_id)
    if not project:
        raise _not_found("Project not found")
    return project


def _is_project_member(project: Project, user: User) -> bool:
    for team in project.teams:
        if team.leader_id == user.id:
            return True
        if any(m.user_id == user.id for m in team.members):
            return True
    return False


def list_projects(db: Session, current_user: User, status_filter: Optional[str] = None):
    """
    List projects, newest first. Optional status filter.
    """
    auth.authorize(current_user, Action.PROJECT_LIST)

    query = db.query(Project)
    if status_filter:
        _require_choice(status_filter, config.VALID_PROJECT_STATUSES, "status")
        query = query.filter(Project.status == status_filter)
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def project_template(current_user: User) -> schemas.ProjectTemplate:
    """Defaults for the new-project form."""
    auth.authorize(current_user, Action.PROJECT_CREATE)
    return schemas.ProjectTemplate(
        statuses=list(config.VALID_PROJECT_STATUSES),
        default_status=config.PROJECT_STATUS_PLANNING,
        start_date=utcnow().date(),
    )


def create_project(db: Session, project: schemas.ProjectCreate, current_user: User):
    """
    Create a project. HEAD only; name and start date are required.
    """
    auth.authorize(current_user, Action.PROJECT_CREATE)

    name = _require_text(project.name, "Project name")
    project_status = project.status or config.PROJECT_STATUS_PLANNING
    _require_choice(project_status, config.VALID_PROJECT_STATUSES, "status")
    if project.end_date and project.end_date < project.start_date:
        raise _bad_request("End date cannot be before start date")

    db_project = Project(
        name=name,
        description=project.description,
        start_date=project.start_date,
        end_date=project.end_date,
        status=project_status,
        creator_id=current_user.id,
    )
    db.add(db_project)
    db.commit()
    db.refresh(db_project)

    logger.info(f"Project created: {db_project.name} (ID: {db_project.id}) by user {current_user.id}")
    return db_project


def get_project(db: Session, project_id: int, current_user: User):
    project = _get_project_or_404(db, project_id)
    auth.authorize(
        current_user,
        Action.PROJECT_VIEW,
        Facts(is_project_member=_is_project_member(project, current_user)),
    )
    return project


def update_project(db: Session, project_id: int, changes: schemas.ProjectUpdate, current_user: User):
    project = _get_project_or_404(db, project_id)
    auth.authorize(current_user, Action.PROJECT_UPDATE)

    data = changes.model_dump(exclude_unset=True)
    if "name" in data:
        project.name = _require_text(data["name"], "Project name")
    if "description" in data:
        project.description = data["description"]
    if data.get("start_date"):
        project.start_date = data["start_date"]
    if "end_date" in data:
        project.end_date = data["end_date"]
    if data.get("status"):
        _require_choice(data["status"], config.VALID_PROJECT_STATUSES, "status")
        project.status = data["status"]

    if project.end_date and project.end_date < project.start_date:
        raise _bad_request("End date cannot be before start date")

    db.commit()
    db.refresh(project)
    logger.info(f"Project {project.id} updated by user {current_user.id}")
    return project


def delete_project(db: Session, project_id: int, current_user: User):
    project = _get_project_or_404(db, project_id)
    auth.authorize(current_user, Action.PROJECT_DELETE)

    project.teams.clear()
    db.delete(project)
    db.commit()
    logger.info(f"Project {project_id} deleted by user {current_user.id}")


# ------------------------------------------------------------------
# TEAM CRUD OPERATIONS
# ------------------------------------------------------------------

def get_team_by_id(db: Session, team_id: int):
    return db.query(Team).filter(Team.id == team_id).first()


def get_team_or_404(db: Session, team_id: int) -> Team:
    team = get_team_by_id(db, team_id)
    if not team:
        raise _not_found("Team not found")
    return team


def team_facts(team: Optional[Team]) -> Facts:
    """Leader, members and the members' managers of a team."""
    if team is None:
        return Facts()
    return Facts(
        team_leader_id=team.leader_id,
        team_member_ids=frozenset(m.user_id for m in team.members),
        team_member_manager_ids=frozenset(
            m.user.manager_id for m in team.members if m.user.manager_id is not None
        ),
    )


def is_user_in_team(db: Session, user_id: int, team_id: int) -> bool:
    """
    Check if user is a member of a team.
    """
    return (
        db.query(TeamMember)
        .filter(TeamMember.user_id == user_id, TeamMember.team_id == team_id)
        .first()
        is not None
    )


def _ensure_member(db: Session, team: Team, user_id: int) -> TeamMember:
    membership = (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team.id, TeamMember.user_id == user_id)
        .first()
    )
    if membership:
        return membership
    membership = TeamMember(team_id=team.id, user_id=user_id)
    team.members.append(membership)
    return membership


def _check_leader_candidate(db: Session, leader_id: int) -> User:
    leader = get_user_by_id(db, leader_id)
    if not leader:
        raise _not_found("Team leader not found")
    if leader.role not in (config.ROLE_EMPLOYEE, config.ROLE_MANAGER):
        raise _bad_request("Team leader must be an EMPLOYEE or MANAGER")
    return leader


def _visible_teams_query(db: Session, current_user: User):
    decision = auth.authorize(current_user, Action.TEAM_LIST)
    query = db.query(Team)
    if CAP_SCOPE_ALL not in decision.capabilities:
        query = query.filter(
            or_(
                Team.leader_id == current_user.id,
                Team.members.any(TeamMember.user_id == current_user.id),
            )
        )
    return query


def list_teams(db: Session, current_user: User, project_id: Optional[int] = None):
    """
    HEAD sees all teams; everyone else sees teams they lead or belong to.
    """
    query = _visible_teams_query(db, current_user)
    if project_id is not None:
        query = query.filter(Team.projects.any(Project.id == project_id))
    return query.order_by(Team.created_at.desc(), Team.id.desc()).all()


def _round_half_up(value: float) -> int:
    # 12.5 -> 13, not banker's rounding
    return int(value + 0.5)


def _recent_activity_text(team: Team, tasks, now) -> str:
    window = now - timedelta(days=config.RECENT_ACTIVITY_DAYS)
    recent = sum(1 for t in tasks if t.updated_at and t.updated_at > window)
    if recent:
        return f"{recent} task{'s' if recent > 1 else ''} updated this week"
    if team.updated_at and team.updated_at > window:
        return f"Team updated {(now - team.updated_at).days} days ago"
    return "No recent activity"


def teams_overview(db: Session, current_user: User) -> schemas.TeamOverview:
    """
    Per-team task statistics for the dashboard, plus a summary across teams.
    """
    teams = _visible_teams_query(db, current_user).order_by(Team.updated_at.desc()).all()
    now = utcnow()
    today = now.date()

    items = []
    for team in teams:
        tasks = team.tasks
        total = len(tasks)
        completed = sum(1 for t in tasks if t.status == config.TASK_STATUS_FINISHED)
        stats = schemas.TeamTaskStats(
            total=total,
            completed=completed,
            pending=sum(1 for t in tasks if t.status == config.TASK_STATUS_BACKLOG),
            in_progress=sum(1 for t in tasks if t.status == config.TASK_STATUS_ONGOING),
            overdue=sum(
                1 for t in tasks
                if t.due_date and t.due_date < today and t.status != config.TASK_STATUS_FINISHED
            ),
            high_priority=sum(1 for t in tasks if t.priority == config.TASK_PRIORITY_HIGH),
        )

        member_roles = {}
        for m in team.members:
            member_roles[m.user.role] = member_roles.get(m.user.role, 0) + 1

        items.append(schemas.TeamOverviewItem(
            id=team.id,
            name=team.name,
            description=team.description,
            leader_id=team.leader_id,
            leader=schemas.UserBrief.model_validate(team.leader) if team.leader else None,
            projects=[schemas.ProjectBrief.model_validate(p) for p in team.projects],
            member_count=len(team.members),
            member_roles=member_roles,
            task_stats=stats,
            completion_percentage=_round_half_up(completed * 100 / total) if total else 0,
            recent_activity=_recent_activity_text(team, tasks, now),
            is_user_leader=team.leader_id == current_user.id,
            is_user_member=any(m.user_id == current_user.id for m in team.members),
            created_at=team.created_at,
            updated_at=team.updated_at,
        ))

    summary = schemas.TeamOverviewSummary(
        total_teams=len(items),
        teams_as_leader=sum(1 for t in items if t.is_user_leader),
        teams_as_member=sum(1 for t in items if t.is_user_member and not t.is_user_leader),
        total_tasks=sum(t.task_stats.total for t in items),
        total_completed_tasks=sum(t.task_stats.completed for t in items),
        total_overdue_tasks=sum(t.task_stats.overdue for t in items),
        average_completion_rate=(
            _round_half_up(sum(t.completion_percentage for t in items) / len(items)) if items else 0
        ),
    )
    return schemas.TeamOverview(teams=items, summary=summary)


def create_team(db: Session, team: schemas.TeamCreate, current_user: User):
    """
    Create a team under one or more projects. The leader becomes a member.
    """
    auth.authorize(current_user, Action.TEAM_CREATE)

    name = _require_text(team.name, "Team name")
    if not team.project_ids:
        raise _bad_request("At least one project is required")

    projects = []
    for project_id in dict.fromkeys(team.project_ids):
        projects.append(_get_project_or_404(db, project_id))

    _check_leader_candidate(db, team.leader_id)

    db_team = Team(
        name=name,
        description=team.description,
        leader_id=team.leader_id,
        creator_id=current_user.id,
    )
    db_team.projects = projects
    db_team.members.append(TeamMember(user_id=team.leader_id))
    db.add(db_team)
    db.commit()
    db.refresh(db_team)

    logger.info(f"Team created: {db_team.name} (ID: {db_team.id}) by user {current_user.id}")
    return db_team


def get_team(db: Session, team_id: int, current_user: User):
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_VIEW, team_facts(team))
    return team


def update_team(db: Session, team_id: int, changes: schemas.TeamEdit, current_user: User):
    """
    Update team details. Changing the leader additionally requires HEAD.
    """
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_UPDATE, team_facts(team))

    data = changes.model_dump(exclude_unset=True)
    if "name" in data:
        team.name = _require_text(data["name"], "Team name")
    if "description" in data:
        team.description = data["description"]
    if "leader_id" in data:
        auth.authorize(current_user, Action.TEAM_CHANGE_LEADER)
        leader_id = data["leader_id"]
        if leader_id is not None:
            _check_leader_candidate(db, leader_id)
            _ensure_member(db, team, leader_id)
        team.leader_id = leader_id

    db.commit()
    db.refresh(team)
    logger.info(f"Team {team.id} updated by user {current_user.id}")
    return team


def delete_team(db: Session, team_id: int, current_user: User):
    """
    Delete a team with its memberships and updates. Its tasks are kept and detached.
    """
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_DELETE)

    for task in team.tasks:
        task.team_id = None
    team.projects.clear()
    db.delete(team)
    db.commit()
    logger.info(f"Team {team_id} deleted by user {current_user.id}")


def team_permissions(db: Session, team_id: int, current_user: User) -> schemas.TeamPermissions:
    team = get_team_or_404(db, team_id)
    decision = auth.authorize(current_user, Action.TEAM_PERMISSIONS, team_facts(team))
    return schemas.TeamPermissions(**team_permission_flags(decision))


def list_team_members(db: Session, team_id: int, current_user: User):
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_MEMBERS_VIEW, team_facts(team))
    return sorted(team.members, key=lambda m: m.joined_at or utcnow())


def add_team_member(db: Session, team_id: int, user_id: int, current_user: User):
    """
    Add a user to a team. HEAD or the team leader only.
    """
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_MEMBERS_MANAGE, team_facts(team))

    if not get_user_by_id(db, user_id):
        raise _not_found("User not found")
    if is_user_in_team(db, user_id, team_id):
        raise _bad_request("User is already a member of this team")

    membership = TeamMember(user_id=user_id)
    team.members.append(membership)
    db.commit()
    db.refresh(membership)

    logger.info(f"User {user_id} added to team {team_id} by user {current_user.id}")
    return membership


def remove_team_member(db: Session, team_id: int, user_id: int, current_user: User):
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TEAM_MEMBERS_MANAGE, team_facts(team))

    if team.leader_id == user_id:
        raise _bad_request("Cannot remove the team leader; assign a new leader first")

    membership = (
        db.query(TeamMember)
        .filter(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        .first()
    )
    if not membership:
        raise _not_found("User is not a member of this team")

    team.members.remove(membership)
    db.commit()
    logger.info(f"User {user_id} removed from team {team_id} by user {current_user.id}")


# ------------------------------------------------------------------
# UPDATE REQUESTS (notifications to team members)
# ------------------------------------------------------------------

def request_updates(db: Session, team_id: int, payload: schemas.UpdateRequestCreate, current_user: User):
    """
    Notify one member (memberId) or every member except the requester.
    """
    if not payload.message or not payload.message.strip():
        raise _bad_request("Update request message is required")

    team = get_team_or_404(db, team_id)
    facts = team_facts(team)
    auth.authorize(current_user, Action.TEAM_REQUEST_UPDATES, facts)

    text = f"{current_user.name} requested an update: {payload.message.strip()}"

    if payload.member_id is not None:
        if payload.member_id not in facts.team_member_ids:
            raise _bad_request("User is not a member of this team")
        notification = Notification(
            type=config.NOTIFICATION_TASK_UPDATE_REQUESTED,
            message=text,
            user_id=payload.member_id,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(f"Update requested from user {payload.member_id} in team {team_id}")
        return schemas.UpdateRequestResult(
            message="Update requested from team member",
            notification=schemas.NotificationResponse.model_validate(notification),
            notifications_count=1,
        )

    recipients = [uid for uid in sorted(facts.team_member_ids) if uid != current_user.id]
    for uid in recipients:
        db.add(Notification(
            type=config.NOTIFICATION_TASK_UPDATE_REQUESTED,
            message=text,
            user_id=uid,
        ))
    db.commit()
    logger.info(f"Update requested from {len(recipients)} members of team {team_id}")
    return schemas.UpdateRequestResult(
        message="Update requested from all team members",
        notifications_count=len(recipients),
    )


def list_update_requests(db: Session, team_id: int, current_user: User):
    team = get_team_or_404(db, team_id)
    facts = team_facts(team)
    auth.authorize(current_user, Action.TEAM_VIEW_UPDATE_REQUESTS, facts)

    if not facts.team_member_ids:
        return []
    return (
        db.query(Notification)
        .filter(
            Notification.user_id.in_(facts.team_member_ids),
            Notification.type == config.NOTIFICATION_TASK_UPDATE_REQUESTED,
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


# ------------------------------------------------------------------
# TEAM UPDATE CRUD OPERATIONS
# ------------------------------------------------------------------

def _get_team_update_or_404(db: Session, update_id: int) -> TeamUpdate:
    update = db.query(TeamUpdate).filter(TeamUpdate.id == update_id).first()
    if not update:
        raise _not_found("Team update not found")
    return update


def _update_facts(update: TeamUpdate) -> Facts:
    facts = team_facts(update.team)
    return Facts(
        team_leader_id=facts.team_leader_id,
        team_member_ids=facts.team_member_ids,
        author_id=update.member.user_id,
    )


def list_team_updates(
    db: Session,
    current_user: User,
    team_id: Optional[int] = None,
    task_id: Optional[int] = None,
    user_id: Optional[int] = None,
):
    """
    Progress notes, newest first. With teamId the caller needs access to that
    team; without it, employees only see updates from their own teams.
    """
    query = db.query(TeamUpdate)

    if team_id is not None:
        team = get_team_or_404(db, team_id)
        auth.authorize(current_user, Action.TEAM_UPDATE_VIEW, team_facts(team))
        query = query.filter(TeamUpdate.team_id == team_id)
    elif current_user.role == config.ROLE_EMPLOYEE:
        member_team_ids = [m.team_id for m in current_user.team_memberships]
        query = query.filter(TeamUpdate.team_id.in_(member_team_ids))

    if task_id is not None:
        query = query.filter(TeamUpdate.task_id == task_id)
    if user_id is not None:
        query = query.join(TeamMember, TeamUpdate.member_id == TeamMember.id).filter(
            TeamMember.user_id == user_id
        )

    return query.order_by(TeamUpdate.created_at.desc(), TeamUpdate.id.desc()).all()


def create_team_update(db: Session, payload: schemas.TeamUpdateCreate, current_user: User):
    content = _require_text(payload.content, "Content")
    team = get_team_or_404(db, payload.team_id)
    auth.authorize(current_user, Action.TEAM_UPDATE_POST, team_facts(team))

    if payload.task_id is not None:
        task = get_task_by_id(db, payload.task_id)
        if not task:
            raise _not_found("Task not found")
        if task.team_id != team.id:
            raise _bad_request("Task is not assigned to this team")

    membership = _ensure_member(db, team, current_user.id)
    update = TeamUpdate(
        content=content,
        member=membership,
        team_id=team.id,
        task_id=payload.task_id,
    )
    db.add(update)
    db.commit()
    db.refresh(update)

    logger.info(f"Team update {update.id} posted to team {team.id} by user {current_user.id}")
    return update


def get_team_update(db: Session, update_id: int, current_user: User):
    update = _get_team_update_or_404(db, update_id)
    auth.authorize(current_user, Action.TEAM_UPDATE_VIEW, _update_facts(update))
    return update


def edit_team_update(db: Session, update_id: int, payload: schemas.TeamUpdateEdit, current_user: User):
    update = _get_team_update_or_404(db, update_id)
    auth.authorize(current_user, Action.TEAM_UPDATE_EDIT, _update_facts(update))

    update.content = _require_text(payload.content, "Content")
    db.commit()
    db.refresh(update)
    return update


def delete_team_update(db: Session, update_id: int, current_user: User):
    update = _get_team_update_or_404(db, update_id)
    auth.authorize(current_user, Action.TEAM_UPDATE_DELETE, _update_facts(update))

    db.delete(update)
    db.commit()
    logger.info(f"Team update {update_id} deleted by user {current_user.id}")


# ------------------------------------------------------------------
# TASK CRUD OPERATIONS
# ------------------------------------------------------------------

def get_task_by_id(db: Session, task_id: int):
    return db.query(Task).filter(Task.id == task_id).first()


def _get_task_or_404(db: Session, task_id: int) -> Task:
    task = get_task_by_id(db, task_id)
    if not task:
        raise _not_found("Task not found")
    return task


def task_facts(task: Task) -> Facts:
    """Ownership of a task plus the team it is assigned to, if any."""
    team = team_facts(task.team)
    return Facts(
        creator_id=task.creator_id,
        assignee_id=task.assignee_id,
        assignee_manager_id=task.assignee.manager_id if task.assignee else None,
        team_leader_id=team.team_leader_id,
        team_member_ids=team.team_member_ids,
    )


def _check_assignee(db: Session, assignee_id: int, current_user: User):
    assignee = get_user_by_id(db, assignee_id)
    if not assignee:
        raise _not_found("Assignee not found")
    auth.authorize(current_user, Action.TASK_ASSIGN, user_facts(assignee))


def _check_team_assignment(db: Session, team_id: int, current_user: User):
    team = get_team_or_404(db, team_id)
    auth.authorize(current_user, Action.TASK_ASSIGN_TEAM, team_facts(team))


def create_task(db: Session, task: schemas.TaskCreate, current_user: User):
    """
    Create a task. Employees cannot create tasks; managers may only assign to
    their own reports and to teams they lead.
    """
    auth.authorize(current_user, Action.TASK_CREATE)

    title = _require_text(task.title, "Title")
    priority = task.priority or config.TASK_PRIORITY_MEDIUM
    _require_choice(priority, config.VALID_TASK_PRIORITIES, "priority")

    if task.assignee_id is not None:
        _check_assignee(db, task.assignee_id, current_user)
    if task.team_id is not None:
        _check_team_assignment(db, task.team_id, current_user)

    db_task = Task(
        title=title,
        description=task.description,
        priority=priority,
        status=config.TASK_STATUS_BACKLOG,
        due_date=task.due_date,
        assignee_id=task.assignee_id,
        team_id=task.team_id,
        creator_id=current_user.id,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"Task created: {db_task.title} (ID: {db_task.id}) by user {current_user.id}")
    return db_task


def list_tasks(
    db: Session,
    current_user: User,
    status_filter: Optional[str] = None,
    user_id: Optional[int] = None,
):
    """
    Role-scoped task list, newest first.

    With user_id, returns that user's active (BACKLOG / ONGOING) tasks instead,
    provided the caller may look at that user's work. A status filter
    narrows either list.
    """
    if status_filter:
        _require_choice(status_filter, config.VALID_TASK_STATUSES, "status")

    if user_id is not None:
        require_user_work_access(db, user_id, current_user)
        query = db.query(Task).filter(
            Task.assignee_id == user_id,
            Task.status.in_(config.ACTIVE_TASK_STATUSES),
        )
    else:
        query = db.query(Task)

        if current_user.role == config.ROLE_MANAGER:
            report_ids = [u.id for u in current_user.reports]
            query = query.filter(
                or_(
                    Task.creator_id == current_user.id,
                    Task.assignee_id == current_user.id,
                    Task.assignee_id.in_(report_ids),
                )
            )
        elif current_user.role != config.ROLE_HEAD:
            query = query.filter(Task.assignee_id == current_user.id)

    if status_filter:
        query = query.filter(Task.status == status_filter)

    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task(db: Session, task_id: int, current_user: User):
    task = _get_task_or_404(db, task_id)
    auth.authorize(current_user, Action.TASK_VIEW, task_facts(task))
    return task


def patch_task(db: Session, task_id: int, changes: schemas.TaskPatch, current_user: User):
    """
    Quick status / priority / assignee update. Employees may change status only.
    """
    task = _get_task_or_404(db, task_id)
    decision = auth.authorize(current_user, Action.TASK_PATCH, task_facts(task))

    if (changes.priority or changes.assignee_id) and CAP_EDIT_FIELDS not in decision.capabilities:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employees can only update task status"
        )

    if changes.status:
        _require_choice(changes.status, config.VALID_TASK_STATUSES, "status")
        task.status = changes.status
    if changes.priority:
        _require_choice(changes.priority, config.VALID_TASK_PRIORITIES, "priority")
        task.priority = changes.priority
    if changes.assignee_id and changes.assignee_id != task.assignee_id:
        _check_assignee(db, changes.assignee_id, current_user)
        task.assignee_id = changes.assignee_id

    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} patched by user {current_user.id}")
    return task


def edit_task(db: Session, task_id: int, changes: schemas.TaskEdit, current_user: User):
    """
    Full edit of a task, including its team. Not available to employees.
    """
    task = _get_task_or_404(db, task_id)
    auth.authorize(current_user, Action.TASK_EDIT, task_facts(task))

    data = changes.model_dump(exclude_unset=True)
    if "title" in data:
        task.title = _require_text(data["title"], "Title")
    if "description" in data:
        task.description = data["description"]
    if data.get("priority"):
        _require_choice(data["priority"], config.VALID_TASK_PRIORITIES, "priority")
        task.priority = data["priority"]
    if "due_date" in data:
        task.due_date = data["due_date"]
    if "assignee_id" in data:
        assignee_id = data["assignee_id"]
        if assignee_id is not None and assignee_id != task.assignee_id:
            _check_assignee(db, assignee_id, current_user)
        task.assignee_id = assignee_id
    if "team_id" in data:
        team_id = data["team_id"]
        if team_id is not None and team_id != task.team_id:
            _check_team_assignment(db, team_id, current_user)
        task.team_id = team_id

    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} edited by user {current_user.id}")
    return task


def delete_task(db: Session, task_id: int, current_user: User):
    """
    Delete a task. Its issues and team updates are kept and detached.
    """
    task = _get_task_or_404(db, task_id)
    auth.authorize(current_user, Action.TASK_DELETE, task_facts(task))

    for issue in task.issues:
        issue.task_id = None
    db.query(TeamUpdate).filter(TeamUpdate.task_id == task_id).update(
        {TeamUpdate.task_id: None}, synchronize_session=False
    )
    db.delete(task)
    db.commit()
    logger.info(f"Task {task_id} deleted by user {current_user.id}")


# ------------------------------------------------------------------
# ISSUE CRUD OPERATIONS
# ------------------------------------------------------------------

def _get_issue_or_404(db: Session, issue_id: int) -> Issue:
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue:
        raise _not_found("Issue not found")
    return issue


def issue_facts(issue: Issue) -> Facts:
    return Facts(
        creator_id=issue.creator_id,
        target_user_id=issue.creator_id,
        target_manager_id=issue.creator.manager_id if issue.creator else None,
    )


def create_issue(db: Session, payload: schemas.IssueCreate, current_user: User):
    """
    Report an issue, optionally against a task. Anyone signed in may do this.
    """
    if not payload.title or not payload.title.strip() or not payload.description or not payload.description.strip():
        raise _bad_request("Title and description are required")

    if payload.task_id is not None and not get_task_by_id(db, payload.task_id):
        raise _not_found("Task not found")

    issue = Issue(
        title=payload.title.strip(),
        description=payload.description.strip(),
        status=config.ISSUE_STATUS_OPEN,
        creator_id=current_user.id,
        task_id=payload.task_id,
    )
    db.add(issue)
    db.commit()
    db.refresh(issue)

    logger.info(f"Issue created: {issue.title} (ID: {issue.id}) by user {current_user.id}")
    return issue


def list_issues(
    db: Session,
    current_user: User,
    status_filter: Optional[str] = None,
    user_id: Optional[int] = None,
):
    """
    Role-scoped issue list, newest first. With user_id, that user's open issues.
    A status filter narrows either list.
    """
    if status_filter:
        _require_choice(status_filter, config.VALID_ISSUE_STATUSES, "status")

    if user_id is not None:
        require_user_work_access(db, user_id, current_user)
        query = db.query(Issue).filter(
            Issue.creator_id == user_id,
            Issue.status.in_(config.OPEN_ISSUE_STATUSES),
        )
    else:
        query = db.query(Issue)

        if current_user.role == config.ROLE_MANAGER:
            report_ids = [u.id for u in current_user.reports]
            query = query.filter(
                or_(Issue.creator_id == current_user.id, Issue.creator_id.in_(report_ids))
            )
        elif current_user.role != config.ROLE_HEAD:
            query = query.filter(Issue.creator_id == current_user.id)

    if status_filter:
        query = query.filter(Issue.status == status_filter)

    return query.order_by(Issue.created_at.desc(), Issue.id.desc()).all()


def get_issue(db: Session, issue_id: int, current_user: User):
    issue = _get_issue_or_404(db, issue_id)
    auth.authorize(current_user, Action.ISSUE_VIEW, issue_facts(issue))
    return issue


def patch_issue(db: Session, issue_id: int, changes: schemas.IssuePatch, current_user: User):
    issue = _get_issue_or_404(db, issue_id)
    auth.authorize(current_user, Action.ISSUE_UPDATE, issue_facts(issue))

    if changes.status:
        _require_choice(changes.status, config.VALID_ISSUE_STATUSES, "status")
        issue.status = changes.status
    if changes.title is not None:
        issue.title = _require_text(changes.title, "Title")
    if changes.description is not None:
        issue.description = _require_text(changes.description, "Description")

    db.commit()
    db.refresh(issue)
    logger.info(f"Issue {issue.id} updated by user {current_user.id}")
    return issue


def delete_issue(db: Session, issue_id: int, current_user: User):
    issue = _get_issue_or_404(db, issue_id)
    auth.authorize(current_user, Action.ISSUE_DELETE, issue_facts(issue))

    db.delete(issue)
    db.commit()
    logger.info(f"Issue {issue_id} deleted by user {current_user.id}")


# ------------------------------------------------------------------
# NOTIFICATIONS
# ------------------------------------------------------------------

def list_notifications(db: Session, current_user: User):
    return (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )


def mark_notification_read(db: Session, notification_id: int, current_user: User):
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise _not_found("Notification not found")
    if notification.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification
