"""
Application Configuration File

This file centralizes all configuration variables so that:
- deployment changes do not require code changes
- every value can be overridden from the environment
- tests can point the app at a throwaway database
"""

import os
from pathlib import Path

# -------------------------------------------------
# BASE DIRECTORY
# -------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent

# -------------------------------------------------
# DATABASE CONFIGURATION
# -------------------------------------------------
DATABASE_NAME = "teamboard.db"
DATABASE_PATH = BASE_DIR / DATABASE_NAME

DATABASE_URL = os.environ.get("TEAMBOARD_DATABASE_URL", f"sqlite:///{DATABASE_PATH}")

# -------------------------------------------------
# APPLICATION SETTINGS
# -------------------------------------------------
APP_NAME = "Teamboard"
APP_VERSION = "1.0"
DEBUG = os.environ.get("TEAMBOARD_DEBUG", "false").lower() in ("1", "true", "yes")

# -------------------------------------------------
# LOGGING
# -------------------------------------------------
LOG_DIR = Path(os.environ.get("TEAMBOARD_LOG_DIR", BASE_DIR / "logs"))
LOG_FILE = LOG_DIR / "app.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

# -------------------------------------------------
# AUTHENTICATION SETTINGS
# -------------------------------------------------
SESSION_HEADER = "X-Session-Token"
SESSION_TOKEN_LENGTH = 32
# 30 days, refreshed on every authenticated request
SESSION_TIMEOUT_MINUTES = int(os.environ.get("TEAMBOARD_SESSION_TIMEOUT_MINUTES", 30 * 24 * 60))
BCRYPT_ROUNDS = int(os.environ.get("TEAMBOARD_BCRYPT_ROUNDS", 12))

# -------------------------------------------------
# NETWORK SETTINGS
# -------------------------------------------------
DEFAULT_HOST = os.environ.get("TEAMBOARD_HOST", "0.0.0.0")
DEFAULT_PORT = int(os.environ.get("TEAMBOARD_PORT", 8000))

# -------------------------------------------------
# ROLE DEFINITIONS
# -------------------------------------------------
ROLE_HEAD = "HEAD"
ROLE_MANAGER = "MANAGER"
ROLE_EMPLOYEE = "EMPLOYEE"

VALID_ROLES = (ROLE_HEAD, ROLE_MANAGER, ROLE_EMPLOYEE)

# -------------------------------------------------
# PROJECT CONSTANTS
# -------------------------------------------------
PROJECT_STATUS_PLANNING = "PLANNING"
PROJECT_STATUS_ACTIVE = "ACTIVE"
PROJECT_STATUS_COMPLETED = "COMPLETED"
PROJECT_STATUS_ON_HOLD = "ON_HOLD"

VALID_PROJECT_STATUSES = (
    PROJECT_STATUS_PLANNING,
    PROJECT_STATUS_ACTIVE,
    PROJECT_STATUS_COMPLETED,
    PROJECT_STATUS_ON_HOLD,
)

# -------------------------------------------------
# TASK CONSTANTS
# -------------------------------------------------
TASK_STATUS_BACKLOG = "BACKLOG"
TASK_STATUS_ONGOING = "ONGOING"
TASK_STATUS_FINISHED = "FINISHED"

VALID_TASK_STATUSES = (TASK_STATUS_BACKLOG, TASK_STATUS_ONGOING, TASK_STATUS_FINISHED)
ACTIVE_TASK_STATUSES = (TASK_STATUS_ONGOING, TASK_STATUS_BACKLOG)

TASK_PRIORITY_LOW = "LOW"
TASK_PRIORITY_MEDIUM = "MEDIUM"
TASK_PRIORITY_HIGH = "HIGH"

VALID_TASK_PRIORITIES = (TASK_PRIORITY_LOW, TASK_PRIORITY_MEDIUM, TASK_PRIORITY_HIGH)

# -------------------------------------------------
# ISSUE CONSTANTS
# -------------------------------------------------
ISSUE_STATUS_OPEN = "OPEN"
ISSUE_STATUS_IN_PROGRESS = "IN_PROGRESS"
ISSUE_STATUS_RESOLVED = "RESOLVED"
ISSUE_STATUS_CLOSED = "CLOSED"

VALID_ISSUE_STATUSES = (
    ISSUE_STATUS_OPEN,
    ISSUE_STATUS_IN_PROGRESS,
    ISSUE_STATUS_RESOLVED,
    ISSUE_STATUS_CLOSED,
)
OPEN_ISSUE_STATUSES = (ISSUE_STATUS_OPEN, ISSUE_STATUS_IN_PROGRESS)

# -------------------------------------------------
# NOTIFICATION CONSTANTS
# -------------------------------------------------
NOTIFICATION_TASK_UPDATE_REQUESTED = "TASK_UPDATE_REQUESTED"

# -------------------------------------------------
# TEAM OVERVIEW
# -------------------------------------------------
RECENT_ACTIVITY_DAYS = 7
