"""
=============================================================================
PROGRESS.PY — Logging daily progress
=============================================================================
Logging progress is a small pipeline:

  1. Check the task exists and belongs to the user
  2. Validate status and time spent
  3. Persist the entry (hours → minutes)
  4. Run the post-log hooks (badge engine) in order

Step 4 can never undo step 3: a failing hook is logged and skipped, the
caller still gets the saved entry.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

import storage
from challenges import normalize_timestamp
from errors import ValidationError, NotFoundError, PermissionDeniedError
from gamification import check_and_award_badges
from models import ProgressStatus, TaskProgress, Task

logger = logging.getLogger("streakly.progress")

# hook(db, user_id, challenge_id, now) → anything (ignored)
PostLogHook = Callable[[Session, int, int, Optional[datetime]], object]

POST_LOG_HOOKS: list[PostLogHook] = [check_and_award_badges]

# One entry covers at most one day of work
MAX_HOURS_PER_ENTRY = 24


# ─────────────────────────────────────────────────────────────────────────────
# UNITS
# ─────────────────────────────────────────────────────────────────────────────
# Time spent is persisted in minutes and shown in hours.

def hours_to_minutes(hours: Optional[float]) -> Optional[int]:
    if hours is None:
        return None
    return int(round(hours * 60))


def minutes_to_hours(minutes: Optional[int]) -> Optional[float]:
    if minutes is None:
        return None
    return minutes / 60


def parse_status(value) -> ProgressStatus:
    try:
        return ProgressStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ProgressStatus)
        raise ValidationError(f"Status must be one of: {allowed}")


# ─────────────────────────────────────────────────────────────────────────────
# OWNERSHIP
# ─────────────────────────────────────────────────────────────────────────────

def get_owned_task(db: Session, user_id: int, task_id: int) -> Task:
    """The task, if it exists and its challenge belongs to user_id"""
    task = storage.get_task(db, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    challenge = storage.get_challenge(db, task.challenge_id)
    if challenge is None or challenge.user_id != user_id:
        raise PermissionDeniedError("Unauthorized")
    return task


# =============================================================================
# ===================== LOG PROGRESS ==========================================
# =============================================================================

def run_post_log_hooks(
    db: Session,
    user_id: int,
    challenge_id: int,
    now: Optional[datetime] = None,
    hooks: Optional[list[PostLogHook]] = None,
):
    for hook in (POST_LOG_HOOKS if hooks is None else hooks):
        try:
            hook(db, user_id, challenge_id, now)
        except Exception:
            db.rollback()
            logger.exception(
                f"❌ Post-log hook {getattr(hook, '__name__', hook)} failed "
                f"(user {user_id}, challenge {challenge_id})"
            )


def log_progress(
    db: Session,
    user_id: int,
    task_id: int,
    date: datetime,
    status,
    hours_spent: Optional[float] = None,
    notes: Optional[str] = None,
    image_url: Optional[str] = None,
    now: Optional[datetime] = None,
    hooks: Optional[list[PostLogHook]] = None,
) -> TaskProgress:
    """
    Appends a progress entry for a task and re-evaluates its challenge.

    hours_spent is in HOURS (2.5 → stored as 150 minutes).

    Raises:
      NotFoundError         → unknown task
      PermissionDeniedError → the task belongs to another user's challenge
      ValidationError       → unknown status, hours negative, NaN or over 24
    """
    task = get_owned_task(db, user_id, task_id)
    status = parse_status(status)
    if hours_spent is not None:
        if not math.isfinite(hours_spent) or hours_spent < 0:
            raise ValidationError("Hours spent must be a non-negative number")
        if hours_spent > MAX_HOURS_PER_ENTRY:
            raise ValidationError(f"Hours spent cannot exceed {MAX_HOURS_PER_ENTRY}")
    if date is None:
        raise ValidationError("Date is required")

    progress = storage.log_task_progress(
        db,
        task_id=task.id,
        date=normalize_timestamp(date),
        status=status.value,
        hours_spent=hours_to_minutes(hours_spent),
        notes=notes,
        image_url=image_url,
    )
    logger.info(f"📝 Progress logged: task {task.id} → {status.value} ({progress.date.date()})")

    run_post_log_hooks(db, user_id, task.challenge_id, now, hooks)
    return progress
