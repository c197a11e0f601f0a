"""
CSV work report for a single user.

One row per task assigned to the user and touched in the date range (newest
first), each followed by that task's issues, then the user's standalone
issues from the same range.
"""

import calendar
import csv
import io
import logging
import re
from datetime import date, datetime, time, timezone
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from models import Issue, Task, User
from policy import Action
import auth
import config
import crud
import schemas

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "Report Type",
    "Title",
    "Description",
    "Status",
    "Priority",
    "Created At",
    "Updated At",
    "Due Date",
]


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _range_bound(value: date, end_of_day: bool) -> datetime:
    """Stored timestamps are naive UTC; a plain date spans the whole day."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.max if end_of_day else time.min)


def report_filename(user_name: str, start: date) -> str:
    """e.g. "jane-doe-march-2024-report.csv" """
    slug = re.sub(r"\s+", "-", user_name.strip()).lower()
    month = calendar.month_name[start.month].lower()
    return f"{slug}-{month}-{start.year}-report.csv"


def render_csv(tasks, standalone_issues) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_COLUMNS)

    for task in tasks:
        writer.writerow([
            "Task",
            task.title,
            task.description or "",
            task.status,
            task.priority,
            _fmt(task.created_at),
            _fmt(task.updated_at),
            _fmt(task.due_date),
        ])
        for issue in task.issues:
            writer.writerow([
                f"Issue (Task: {task.title})",
                issue.title,
                issue.description,
                issue.status,
                "",
                _fmt(issue.created_at),
                _fmt(issue.updated_at),
                "",
            ])

    for issue in standalone_issues:
        writer.writerow([
            "Issue (Standalone)",
            issue.title,
            issue.description,
            issue.status,
            "",
            _fmt(issue.created_at),
            _fmt(issue.updated_at),
            "",
        ])

    return buffer.getvalue()


def build_user_report(db: Session, request: schemas.ReportRequest, current_user: User) -> Tuple[str, str]:
    """
    Returns (filename, csv_text).

    Employees are refused before the payload is looked at. A plain end date is
    inclusive through the end of that day; a timestamp bounds the range exactly.
    """
    if current_user.role == config.ROLE_EMPLOYEE:
        auth.authorize(current_user, Action.REPORT_DOWNLOAD)

    if request.user_id is None or request.start_date is None or request.end_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameters"
        )

    target: Optional[User] = crud.get_user_by_id(db, request.user_id)
    auth.authorize(current_user, Action.REPORT_DOWNLOAD, crud.user_facts(target, request.user_id))

    if not target:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Target user not found"
        )

    range_start = _range_bound(request.start_date, end_of_day=False)
    range_end = _range_bound(request.end_date, end_of_day=True)

    tasks = (
        db.query(Task)
        .filter(
            Task.assignee_id == target.id,
            Task.updated_at >= range_start,
            Task.updated_at <= range_end,
        )
        .order_by(Task.updated_at.desc())
        .all()
    )
    standalone_issues = (
        db.query(Issue)
        .filter(
            Issue.creator_id == target.id,
            Issue.task_id.is_(None),
            Issue.updated_at >= range_start,
            Issue.updated_at <= range_end,
        )
        .order_by(Issue.updated_at.desc())
        .all()
    )

    logger.info(
        f"Report for user {target.id} ({range_start} to {range_end}) "
        f"generated by user {current_user.id}: {len(tasks)} tasks, {len(standalone_issues)} standalone issues"
    )
    return report_filename(target.name, range_start.date()), render_csv(tasks, standalone_issues)
