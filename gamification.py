"""
=============================================================================
GAMIFICATION.PY — Streaks and badges
=============================================================================
Handles:
  - Streaks (consecutive days with at least one completed task)
  - Badges (7/21/30 day milestones and challenge completion)

Nothing here runs on a schedule. Streaks are computed on read (dashboard,
stats), badges are evaluated right after every progress log.

Philosophy:
  Badges are awarded, never revoked. Evaluating the same challenge twice
  gives the same badges: one per (user, name, challenge).
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

import storage
from challenges import mark_completed, normalize_timestamp, ONE_DAY
from models import Badge, Challenge

logger = logging.getLogger("streakly.gamification")


# =============================================================================
# ===================== STREAKS ===============================================
# =============================================================================

def _as_day(value) -> date:
    if isinstance(value, datetime):
        return normalize_timestamp(value).date()
    return value


def calculate_streaks(dates: Iterable, today: Optional[date] = None) -> dict:
    """
    Current and longest streak from the dates of completed entries.

    Several completions on the same calendar day count as one day.

    The current streak is the run that ends today. If today has nothing yet
    but yesterday does, the run ending yesterday still counts: the day is
    not over.

    Returns:
      {"current_streak": 3, "longest_streak": 12}
    """
    days = sorted({_as_day(d) for d in dates})
    if not days:
        return {"current_streak": 0, "longest_streak": 0}

    today = _as_day(today) if today else datetime.utcnow().date()

    longest = 1
    run = 1
    for previous, current in zip(days, days[1:]):
        if current - previous == timedelta(days=1):
            run += 1
            longest = max(longest, run)
        else:
            run = 1

    satisfied = set(days)
    if today in satisfied:
        anchor = today
    elif today - timedelta(days=1) in satisfied:
        anchor = today - timedelta(days=1)
    else:
        anchor = None

    current_streak = 0
    while anchor is not None and anchor in satisfied:
        current_streak += 1
        anchor -= timedelta(days=1)

    return {"current_streak": current_streak, "longest_streak": longest}


def compute_streaks(db: Session, user_id: int, today: Optional[date] = None) -> dict:
    """Streaks over every completed entry in all of the user's challenges"""
    dates = storage.get_completed_progress_dates(db, user_id)
    return calculate_streaks(dates, today)


# =============================================================================
# ===================== BADGES ================================================
# =============================================================================

# Days since the challenge started → (badge name, description)
MILESTONE_BADGES = {
    7: ("7-Day Streak", "Completed 7 consecutive days of tasks"),
    21: ("21-Day Streak", "Completed 21 consecutive days of tasks - habit formed!"),
    30: ("30-Day Milestone", "Completed a full month of tasks"),
}

CHALLENGE_COMPLETED_BADGE = "Challenge Completed"


def days_since_start(challenge: Challenge, now: Optional[datetime] = None) -> int:
    """Whole days between the challenge start and now (0 on the creation day)"""
    now = normalize_timestamp(now) if now else datetime.utcnow()
    return (now - challenge.start_date) // ONE_DAY


def award_completion_badge(
    db: Session,
    user_id: int,
    challenge: Challenge,
    now: Optional[datetime] = None,
) -> Badge:
    return storage.create_badge_if_not_exists(
        db,
        user_id=user_id,
        challenge_id=challenge.id,
        name=CHALLENGE_COMPLETED_BADGE,
        description=f"Completed the {challenge.name} challenge",
        earned_at=now,
    )


def check_and_award_badges(
    db: Session,
    user_id: int,
    challenge_id: int,
    now: Optional[datetime] = None,
) -> list[Badge]:
    """
    Re-evaluates a challenge after a progress log.

    Flow:
      1. Load the challenge (missing or not the user's → nothing to do)
      2. days_diff = whole days since start
      3. Award every milestone whose threshold days_diff has reached
      4. If the last day has been reached (duration <= days_diff + 1):
         mark the challenge completed and award "Challenge Completed"

    Returns the badges that apply to the challenge (already held or new).
    Never raises for a missing challenge: this runs after a write that has
    already succeeded.
    """
    challenge = storage.get_challenge(db, challenge_id)
    if challenge is None:
        logger.warning(f"Badge check skipped: challenge {challenge_id} not found")
        return []
    if challenge.user_id != user_id:
        logger.warning(
            f"Badge check skipped: challenge {challenge_id} does not belong to user {user_id}"
        )
        return []

    now = normalize_timestamp(now) if now else datetime.utcnow()
    days_diff = days_since_start(challenge, now)
    earned = []

    for threshold, (name, description) in sorted(MILESTONE_BADGES.items()):
        if days_diff >= threshold:
            earned.append(storage.create_badge_if_not_exists(
                db,
                user_id=user_id,
                challenge_id=challenge.id,
                name=name,
                description=description,
                earned_at=now,
            ))

    if challenge.duration <= days_diff + 1:
        mark_completed(db, challenge.id)
        earned.append(award_completion_badge(db, user_id, challenge, now))

    return earned
