"""
=============================================================================
CHALLENGES.PY — Challenge lifecycle
=============================================================================
A challenge lasts `duration` days starting the day it is created:

  start_date ─── day 1 ─── day 2 ─── ... ─── day N ─── end_date
                                                       (start + N days)

Everything here is derived from start_date + duration. Nothing runs on a
clock: a challenge only becomes "completed" when someone marks it, or when the
badge engine notices the last day was reached while logging progress.
"""

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

import storage
from errors import ValidationError, NotFoundError
from models import Challenge, ChallengeState

logger = logging.getLogger("streakly.challenges")

ONE_DAY = timedelta(days=1)
HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def normalize_timestamp(value: datetime) -> datetime:
    """Stored timestamps are naive UTC. Aware values are converted, naive ones kept."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# =============================================================================
# ===================== CREATION ==============================================
# =============================================================================

def create_challenge(
    db: Session,
    owner_id: int,
    name: str,
    category: str,
    duration_days: int,
    tasks: list[dict],
    now: Optional[datetime] = None,
) -> Challenge:
    """
    Creates a challenge and all of its tasks in a single transaction.

    tasks → [{"name": "Run 5k", "scheduled_time": "07:00"}, ...]

    Raises ValidationError when:
      - duration_days < 1
      - tasks is empty
      - the challenge or a task has a blank name
      - a scheduled_time is not "HH:MM"
    """
    if duration_days is None or duration_days < 1:
        raise ValidationError("Duration must be at least 1 day")
    if not tasks:
        raise ValidationError("At least one task is required")
    if not name or not name.strip():
        raise ValidationError("Challenge name is required")
    if not category or not category.strip():
        raise ValidationError("Category is required")

    cleaned_tasks = []
    for task in tasks:
        task_name = (task.get("name") or "").strip()
        if not task_name:
            raise ValidationError("Task name is required")
        scheduled_time = task.get("scheduled_time") or None
        if scheduled_time is not None:
            scheduled_time = scheduled_time.strip()
            if not HHMM_RE.match(scheduled_time):
                raise ValidationError(f"Scheduled time must be HH:MM, got '{scheduled_time}'")
        cleaned_tasks.append((task_name, scheduled_time))

    start_date = normalize_timestamp(now) if now else datetime.utcnow()
    # Calendar-day arithmetic: same time of day, N days later
    end_date = start_date + timedelta(days=duration_days)

    challenge = storage.create_challenge(
        db,
        user_id=owner_id,
        name=name.strip(),
        category=category.strip(),
        duration=duration_days,
        start_date=start_date,
        end_date=end_date,
        commit=False,
    )
    for task_name, scheduled_time in cleaned_tasks:
        storage.create_task(db, challenge.id, task_name, scheduled_time, commit=False)
    db.commit()
    db.refresh(challenge)

    logger.info(
        f"➕ Challenge created: {challenge.name} ({duration_days} days, "
        f"{len(cleaned_tasks)} tasks, user {owner_id})"
    )
    return challenge


# =============================================================================
# ===================== TIME MATH =============================================
# =============================================================================

def elapsed_days(challenge: Challenge, as_of: Optional[datetime] = None) -> int:
    """
    Day N of the challenge. Day 1 is the creation day.

    Clamped to [1, duration]: never 0 for an as_of before the start, never more
    than duration for an as_of far in the future.
    """
    as_of = normalize_timestamp(as_of) if as_of else datetime.utcnow()
    days = (as_of - challenge.start_date) // ONE_DAY + 1
    return max(1, min(days, challenge.duration))


def progress_percentage(challenge: Challenge, as_of: Optional[datetime] = None) -> int:
    """Elapsed share of the challenge, 0-100, rounded half up"""
    ratio = elapsed_days(challenge, as_of) / challenge.duration * 100
    return min(math.floor(ratio + 0.5), 100)


def days_remaining(challenge: Challenge, as_of: Optional[datetime] = None) -> int:
    return challenge.duration - elapsed_days(challenge, as_of)


def challenge_state(challenge: Challenge, as_of: Optional[datetime] = None) -> ChallengeState:
    if challenge.is_completed:
        return ChallengeState.completed
    as_of = normalize_timestamp(as_of) if as_of else datetime.utcnow()
    if as_of >= challenge.end_date:
        return ChallengeState.expired
    return ChallengeState.in_progress


def describe_challenge(challenge: Challenge, as_of: Optional[datetime] = None) -> dict:
    """Lifecycle summary shown next to a challenge ("Day 3 of 30", 10%...)"""
    as_of = normalize_timestamp(as_of) if as_of else datetime.utcnow()
    return {
        "day": elapsed_days(challenge, as_of),
        "total_days": challenge.duration,
        "progress_percentage": progress_percentage(challenge, as_of),
        "days_remaining": days_remaining(challenge, as_of),
        "state": challenge_state(challenge, as_of).value,
    }


# =============================================================================
# ===================== COMPLETION ============================================
# =============================================================================

def mark_completed(db: Session, challenge_id: int) -> Challenge:
    """
    Marks a challenge as completed. Idempotent: an already completed challenge
    is returned untouched.

    Raises NotFoundError if the challenge does not exist.
    """
    existing = storage.get_challenge(db, challenge_id)
    if existing is None:
        raise NotFoundError("Challenge", challenge_id)
    if existing.is_completed:
        return existing

    challenge = storage.mark_challenge_completed(db, challenge_id)
    logger.info(f"🏁 Challenge completed: {challenge.name} (id {challenge.id})")
    return challenge
