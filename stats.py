"""
=============================================================================
STATS.PY — Dashboard statistics and activity feed
=============================================================================
Both are read-only folds over the user's challenges → tasks → progress
entries (+ badges). Safe to call as often as the dashboard polls.

Missing parents never fail a read: a badge pointing to a challenge that cannot
be loaded is shown under "General".
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

import storage
from gamification import compute_streaks
from models import ActivityType, ProgressStatus
from progress import minutes_to_hours
from schemas import UserStats, ActivityItem

GENERAL_LABEL = "General"


# =============================================================================
# ===================== USER STATS ============================================
# =============================================================================

def get_user_stats(db: Session, user_id: int, today: Optional[date] = None) -> UserStats:
    """
    Summary counters for the dashboard.

      active_challenges → challenges not completed yet
      total_tasks       → one per task (not per entry)
      completed_tasks   → tasks with at least one completed entry
      hours_logged      → every entry's time, whatever its status
    """
    challenges = storage.get_challenges_by_user(db, user_id)
    active_challenges = sum(1 for c in challenges if not c.is_completed)

    total_tasks = 0
    completed_tasks = 0
    minutes_logged = 0

    for challenge in challenges:
        for task in storage.get_tasks_by_challenge(db, challenge.id):
            total_tasks += 1
            entries = storage.get_task_progress_by_task(db, task.id)
            if any(ProgressStatus(p.status) is ProgressStatus.completed for p in entries):
                completed_tasks += 1
            minutes_logged += sum(p.hours_spent or 0 for p in entries)

    streaks = compute_streaks(db, user_id, today)

    return UserStats(
        active_challenges=active_challenges,
        completed_tasks=completed_tasks,
        total_tasks=total_tasks,
        hours_logged=minutes_to_hours(minutes_logged),
        badges_count=len(storage.get_user_badges(db, user_id)),
        current_streak=streaks["current_streak"],
        longest_streak=streaks["longest_streak"],
    )


# =============================================================================
# ===================== ACTIVITY FEED =========================================
# =============================================================================

# One entry per ProgressStatus member
PROGRESS_ACTIVITY = {
    ProgressStatus.completed: ActivityType.completed,
    ProgressStatus.partial: ActivityType.missed,
    ProgressStatus.no_action: ActivityType.missed,
}


def _progress_activity_type(status: str) -> ActivityType:
    return PROGRESS_ACTIVITY[ProgressStatus(status)]


def get_user_activity(db: Session, user_id: int) -> list[ActivityItem]:
    """
    Merges three sources into one feed, newest first:

      - challenge created (creation time) and challenge completed (end date)
      - every progress entry → completed / missed (entry date)
      - every badge (earned_at)

    Ids are assigned in generation order and only valid for this response
    (rendering keys). Items on the same date keep generation order.
    """
    items = []

    def add(**fields):
        items.append(ActivityItem(id=len(items) + 1, **fields))

    challenges = storage.get_challenges_by_user(db, user_id)
    challenge_names = {c.id: c.name for c in challenges}

    for challenge in challenges:
        add(
            type=ActivityType.created,
            challenge_id=challenge.id,
            challenge_name=challenge.name,
            date=challenge.created_at,
        )
        if challenge.is_completed:
            add(
                type=ActivityType.completed,
                challenge_id=challenge.id,
                challenge_name=challenge.name,
                date=challenge.end_date,
            )

        for task in storage.get_tasks_by_challenge(db, challenge.id):
            for entry in storage.get_task_progress_by_task(db, task.id):
                add(
                    type=_progress_activity_type(entry.status),
                    challenge_id=challenge.id,
                    challenge_name=challenge.name,
                    task_id=task.id,
                    task_name=task.name,
                    date=entry.date,
                    hours_spent=minutes_to_hours(entry.hours_spent),
                    status=entry.status,
                )

    for badge in storage.get_user_badges(db, user_id):
        challenge_name = GENERAL_LABEL
        if badge.challenge_id is not None:
            challenge_name = challenge_names.get(badge.challenge_id)
            if challenge_name is None:
                challenge = storage.get_challenge(db, badge.challenge_id)
                challenge_name = challenge.name if challenge else GENERAL_LABEL
        add(
            type=ActivityType.badge,
            challenge_id=badge.challenge_id or 0,
            challenge_name=challenge_name,
            badge_id=badge.id,
            badge_name=badge.name,
            date=badge.earned_at,
        )

    # sorted() is stable: equal dates keep generation order
    return sorted(items, key=lambda item: item.date, reverse=True)
