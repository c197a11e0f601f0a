from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    String,
    Text,
    Date,
    DateTime,
    ForeignKey,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from database import Base
import config


def utcnow():
    """Naive UTC timestamp; SQLite does not keep tzinfo on the way back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ------------------------------------------------------------------
# Project <-> Team association table (Many-to-Many)
# ------------------------------------------------------------------

project_teams = Table(
    "project_teams",
    Base.metadata,
    Column("project_id", Integer, ForeignKey("projects.id"), primary_key=True),
    Column("team_id", Integer, ForeignKey("teams.id"), primary_key=True),
)


# ------------------------------------------------------------------
# User Model
# ------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    role = Column(String(20), default=config.ROLE_EMPLOYEE, nullable=False)  # HEAD / MANAGER / EMPLOYEE

    # Only EMPLOYEE users report to a manager
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    manager = relationship("User", remote_side=[id], back_populates="reports")
    reports = relationship("User", back_populates="manager")
    team_memberships = relationship("TeamMember", back_populates="user")
    led_teams = relationship("Team", back_populates="leader", foreign_keys="Team.leader_id")
    notifications = relationship("Notification", back_populates="user")


# ------------------------------------------------------------------
# Project Model
# ------------------------------------------------------------------

class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), default=config.PROJECT_STATUS_PLANNING)  # PLANNING / ACTIVE / COMPLETED / ON_HOLD
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("User")
    teams = relationship("Team", secondary=project_teams, back_populates="projects")


# ------------------------------------------------------------------
# Team Model
# ------------------------------------------------------------------

class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    leader_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    leader = relationship("User", back_populates="led_teams", foreign_keys=[leader_id])
    creator = relationship("User", foreign_keys=[creator_id])
    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    projects = relationship("Project", secondary=project_teams, back_populates="teams")
    tasks = relationship("Task", back_populates="team")
    updates = relationship("TeamUpdate", back_populates="team", cascade="all, delete-orphan")


# ------------------------------------------------------------------
# TeamMember Association Table
# (Many-to-Many: Users <-> Teams)
# ------------------------------------------------------------------

class TeamMember(Base):
    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("user_id", "team_id", name="uq_team_member"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)

    joined_at = Column(DateTime, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="team_memberships")
    team = relationship("Team", back_populates="members")
    updates = relationship("TeamUpdate", back_populates="member", cascade="all, delete-orphan")


# ------------------------------------------------------------------
# Task Model
# ------------------------------------------------------------------

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)

    status = Column(String(20), default=config.TASK_STATUS_BACKLOG)      # BACKLOG / ONGOING / FINISHED
    priority = Column(String(20), default=config.TASK_PRIORITY_MEDIUM)   # LOW / MEDIUM / HIGH

    due_date = Column(Date)

    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Tasks without a team come from the reporting hierarchy
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    assignee = relationship("User", foreign_keys=[assignee_id])
    creator = relationship("User", foreign_keys=[creator_id])
    team = relationship("Team", back_populates="tasks")
    issues = relationship("Issue", back_populates="task")

    @property
    def task_origin(self):
        return "TEAM" if self.team_id else "HIERARCHY"


# ------------------------------------------------------------------
# Issue Model
# ------------------------------------------------------------------

class Issue(Base):
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(20), default=config.ISSUE_STATUS_OPEN)  # OPEN / IN_PROGRESS / RESOLVED / CLOSED

    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("User")
    task = relationship("Task", back_populates="issues")


# ------------------------------------------------------------------
# Notification Model
# ------------------------------------------------------------------

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(50), nullable=False)  # e.g. TASK_UPDATE_REQUESTED
    message = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_read = Column(Boolean, default=False)

    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="notifications")


# ------------------------------------------------------------------
# TeamUpdate Model (progress notes posted by team members)
# ------------------------------------------------------------------

class TeamUpdate(Base):
    __tablename__ = "team_updates"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(Text, nullable=False)
    member_id = Column(Integer, ForeignKey("team_members.id"), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    member = relationship("TeamMember", back_populates="updates")
    team = relationship("Team", back_populates="updates")
    task = relationship("Task")

    @property
    def author(self):
        return self.member.user


# ------------------------------------------------------------------
# AuthSession Model (login sessions, see sessions.py)
# ------------------------------------------------------------------

class AuthSession(Base):
    __tablename__ = "auth_sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow)
    last_active = Column(DateTime, default=utcnow)

    user = relationship("User")
