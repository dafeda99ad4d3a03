"""
=============================================================================
STORAGE.PY — Progress Store (repository over the database)
=============================================================================
The only module that talks to SQLAlchemy directly. Everything else
(challenges, gamification, stats, social) goes through these functions.

Every write commits immediately (except where a caller explicitly batches a
challenge with its tasks): once a function returns, the row is final.
Lookups return None when the row does not exist; deciding whether that is an
error belongs to the caller.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    User, Challenge, Task, TaskProgress, Badge, UserConnection, SharedNote,
    ProgressStatus, ConnectionStatus,
)

logger = logging.getLogger("streakly.storage")


# =============================================================================
# ===================== USERS =================================================
# =============================================================================

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def create_user(db: Session, username: str, email: str, name: str, password_hash: str) -> User:
    user = User(username=username, email=email, name=name, password_hash=password_hash)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# ===================== CHALLENGES ============================================
# =============================================================================

def get_challenge(db: Session, challenge_id: int) -> Optional[Challenge]:
    return db.query(Challenge).filter(Challenge.id == challenge_id).first()


def get_challenges_by_user(db: Session, user_id: int) -> list[Challenge]:
    return db.query(Challenge).filter(
        Challenge.user_id == user_id
    ).order_by(Challenge.id).all()


def create_challenge(
    db: Session,
    user_id: int,
    name: str,
    category: str,
    duration: int,
    start_date: datetime,
    end_date: datetime,
    commit: bool = True,
) -> Challenge:
    """commit=False only flushes, so the id is known before the tasks are added"""
    challenge = Challenge(
        user_id=user_id,
        name=name,
        category=category,
        duration=duration,
        start_date=start_date,
        end_date=end_date,
        is_completed=False,
        created_at=start_date,
    )
    db.add(challenge)
    if commit:
        db.commit()
        db.refresh(challenge)
    else:
        db.flush()
    return challenge


def mark_challenge_completed(db: Session, challenge_id: int) -> Optional[Challenge]:
    """Sets is_completed. Never sets it back to False."""
    challenge = get_challenge(db, challenge_id)
    if not challenge:
        return None
    if not challenge.is_completed:
        challenge.is_completed = True
        db.commit()
        db.refresh(challenge)
    return challenge


# =============================================================================
# ===================== TASKS =================================================
# =============================================================================

def get_task(db: Session, task_id: int) -> Optional[Task]:
    return db.query(Task).filter(Task.id == task_id).first()


def get_tasks_by_challenge(db: Session, challenge_id: int) -> list[Task]:
    return db.query(Task).filter(Task.challenge_id == challenge_id).order_by(Task.id).all()


def create_task(
    db: Session,
    challenge_id: int,
    name: str,
    scheduled_time: Optional[str] = None,
    commit: bool = True,
) -> Task:
    """
    commit=False lets create_challenge add every task of a challenge in the
    same transaction as the challenge itself.
    """
    task = Task(challenge_id=challenge_id, name=name, scheduled_time=scheduled_time)
    db.add(task)
    if commit:
        db.commit()
        db.refresh(task)
    return task


# =============================================================================
# ===================== TASK PROGRESS =========================================
# =============================================================================

def get_task_progress(db: Session, progress_id: int) -> Optional[TaskProgress]:
    return db.query(TaskProgress).filter(TaskProgress.id == progress_id).first()


def get_task_progress_by_task(db: Session, task_id: int) -> list[TaskProgress]:
    """All entries of a task, oldest date first"""
    return db.query(TaskProgress).filter(
        TaskProgress.task_id == task_id
    ).order_by(TaskProgress.date, TaskProgress.id).all()


def get_completed_progress_dates(db: Session, user_id: int) -> list[datetime]:
    """Dates of every 'completed' entry across all of the user's challenges, newest first"""
    rows = db.query(TaskProgress.date).join(
        Task, Task.id == TaskProgress.task_id
    ).join(
        Challenge, Challenge.id == Task.challenge_id
    ).filter(
        Challenge.user_id == user_id,
        TaskProgress.status == ProgressStatus.completed.value,
    ).order_by(TaskProgress.date.desc()).all()
    return [row[0] for row in rows]


def log_task_progress(
    db: Session,
    task_id: int,
    date: datetime,
    status: str,
    hours_spent: Optional[int] = None,
    notes: Optional[str] = None,
    image_url: Optional[str] = None,
) -> TaskProgress:
    """Appends a progress entry. hours_spent is in minutes."""
    progress = TaskProgress(
        task_id=task_id,
        date=date,
        status=status,
        hours_spent=hours_spent,
        notes=notes,
        image_url=image_url,
    )
    db.add(progress)
    db.commit()
    db.refresh(progress)
    return progress


# =============================================================================
# ===================== BADGES ================================================
# =============================================================================

def get_badge(db: Session, badge_id: int) -> Optional[Badge]:
    return db.query(Badge).filter(Badge.id == badge_id).first()


def get_user_badges(db: Session, user_id: int) -> list[Badge]:
    return db.query(Badge).filter(Badge.user_id == user_id).order_by(Badge.id).all()


def find_badge(db: Session, user_id: int, name: str, challenge_id: Optional[int]) -> Optional[Badge]:
    """Looks up a badge by (user, name, challenge). challenge_id=None matches IS NULL."""
    query = db.query(Badge).filter(Badge.user_id == user_id, Badge.name == name)
    if challenge_id is None:
        query = query.filter(Badge.challenge_id.is_(None))
    else:
        query = query.filter(Badge.challenge_id == challenge_id)
    return query.first()


def create_badge(
    db: Session,
    user_id: int,
    name: str,
    description: str,
    challenge_id: Optional[int] = None,
    earned_at: Optional[datetime] = None,
) -> Badge:
    badge = Badge(
        user_id=user_id,
        challenge_id=challenge_id,
        name=name,
        description=description,
        earned_at=earned_at or datetime.utcnow(),
    )
    db.add(badge)
    db.commit()
    db.refresh(badge)
    return badge


# ─────────────────────────────────────────────────────────────────────────────
# AWARD-IF-ABSENT
# ─────────────────────────────────────────────────────────────────────────────
# Check-then-insert is two round trips. Two requests for the same user and
# challenge are serialised by the lock their (user_id, challenge_id) hashes
# to. The stripe count is fixed, so unrelated pairs may share a lock. The
# unique constraint on the table catches anything the lock cannot see
# (another process against the same database).

BADGE_LOCK_STRIPES = 64
_badge_locks = [threading.Lock() for _ in range(BADGE_LOCK_STRIPES)]


def _badge_lock(user_id: int, challenge_id: Optional[int]) -> threading.Lock:
    return _badge_locks[hash((user_id, challenge_id)) % BADGE_LOCK_STRIPES]


def create_badge_if_not_exists(
    db: Session,
    user_id: int,
    name: str,
    description: str,
    challenge_id: Optional[int] = None,
    earned_at: Optional[datetime] = None,
) -> Badge:
    """
    Returns the existing badge for (user_id, name, challenge_id) unchanged, or
    inserts and returns a new one.
    """
    with _badge_lock(user_id, challenge_id):
        existing = find_badge(db, user_id, name, challenge_id)
        if existing:
            return existing
        try:
            badge = create_badge(db, user_id, name, description, challenge_id, earned_at)
        except IntegrityError:
            db.rollback()
            winner = find_badge(db, user_id, name, challenge_id)
            if winner is None:
                raise
            logger.info(f"Badge '{name}' already inserted concurrently for user {user_id}")
            return winner

    logger.info(f"🏅 Badge awarded: '{name}' (user {user_id}, challenge {challenge_id})")
    return badge


# =============================================================================
# ===================== SOCIAL ================================================
# =============================================================================

def search_users(db: Session, query: str, exclude_user_id: int, limit: int = 20) -> list[User]:
    """Users whose username or name contains query (case-insensitive)"""
    pattern = f"%{query}%"
    return db.query(User).filter(
        User.id != exclude_user_id,
        or_(User.username.ilike(pattern), User.name.ilike(pattern)),
    ).order_by(User.username).limit(limit).all()


def get_connection(db: Session, connection_id: int) -> Optional[UserConnection]:
    return db.query(UserConnection).filter(UserConnection.id == connection_id).first()


def find_connection_between(db: Session, user_a: int, user_b: int) -> Optional[UserConnection]:
    """The connection row between two users, whichever of them sent it"""
    return db.query(UserConnection).filter(
        or_(
            and_(UserConnection.user_id == user_a, UserConnection.connected_user_id == user_b),
            and_(UserConnection.user_id == user_b, UserConnection.connected_user_id == user_a),
        )
    ).first()


def get_connections_for(db: Session, user_id: int) -> list[UserConnection]:
    return db.query(UserConnection).filter(
        or_(UserConnection.user_id == user_id, UserConnection.connected_user_id == user_id)
    ).order_by(UserConnection.created_at.desc(), UserConnection.id.desc()).all()


def create_connection(db: Session, user_id: int, connected_user_id: int) -> UserConnection:
    connection = UserConnection(
        user_id=user_id,
        connected_user_id=connected_user_id,
        status=ConnectionStatus.pending.value,
    )
    db.add(connection)
    db.commit()
    db.refresh(connection)
    return connection


def update_connection_status(db: Session, connection: UserConnection, status: str) -> UserConnection:
    connection.status = status
    connection.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(connection)
    return connection


def create_shared_note(
    db: Session, task_progress_id: int, shared_by_user_id: int, shared_with_user_id: int
) -> SharedNote:
    note = SharedNote(
        task_progress_id=task_progress_id,
        shared_by_user_id=shared_by_user_id,
        shared_with_user_id=shared_with_user_id,
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def get_shared_notes_for(db: Session, user_id: int) -> list[SharedNote]:
    """Notes other users shared with user_id, newest first"""
    return db.query(SharedNote).filter(
        SharedNote.shared_with_user_id == user_id
    ).order_by(SharedNote.created_at.desc(), SharedNote.id.desc()).all()
