"""
=============================================================================
MODELS.PY — Database models (tables)
=============================================================================
Each class here = one table.
Each class attribute = one column.

RELATIONSHIPS:
  USER
  ├── challenges[] ──→ tasks[] ──→ progress[]
  ├── badges[] (optionally scoped to a challenge)
  └── connections (user_connections, one directed row per pair)

  TASK_PROGRESS ──→ shared_notes[] (sharer → recipient)

Nothing is ever deleted: challenges, tasks, progress entries and badges are
append-only. The only mutable column in the core is challenges.is_completed.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# =============================================================================
# ===================== ENUMS =================================================
# =============================================================================
# Stored as plain strings; the enums are the closed set of valid values.

class ProgressStatus(str, enum.Enum):
    """State reported for a task on a given day"""
    completed = "completed"
    partial = "partial"
    no_action = "no-action"


class ConnectionStatus(str, enum.Enum):
    """State of a connection request between two users"""
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class ChallengeState(str, enum.Enum):
    """Temporal state of a challenge, derived (never stored)"""
    in_progress = "in_progress"
    expired = "expired"
    completed = "completed"


class ActivityType(str, enum.Enum):
    """Kinds of items in the activity feed"""
    created = "created"
    completed = "completed"
    missed = "missed"
    badge = "badge"


# =============================================================================
# ===================== TABLE 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Basic data ──
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    # password_hash → never exposed by any response schema

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    challenges = relationship("Challenge", back_populates="user")
    badges = relationship("Badge", back_populates="user")


# =============================================================================
# ===================== TABLE 2: CHALLENGES ===================================
# =============================================================================
# A fixed-duration commitment. end_date = start_date + duration days, computed
# once at creation time.

class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    category = Column(String(50), nullable=False)
    # category → free-form tag ("fitness", "learning"...)
    duration = Column(Integer, nullable=False)
    # duration → in days, >= 1

    start_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    # is_completed → flips False → True exactly once

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="challenges")
    tasks = relationship("Task", back_populates="challenge", order_by="Task.id")


# =============================================================================
# ===================== TABLE 3: TASKS ========================================
# =============================================================================
# Tasks are created together with their challenge and can never be edited or
# removed afterwards (accountability).

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    scheduled_time = Column(String(5), nullable=True)
    # scheduled_time → "HH:MM", informational only

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    challenge = relationship("Challenge", back_populates="tasks")
    progress = relationship("TaskProgress", back_populates="task", order_by="TaskProgress.date")


# =============================================================================
# ===================== TABLE 4: TASK_PROGRESS ================================
# =============================================================================
# One dated report for a task. Several rows may exist for the same task and
# day: readers collapse them (see gamification.calculate_streaks).

class TaskProgress(Base):
    __tablename__ = "task_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)

    date = Column(DateTime, nullable=False)
    # date → the calendar day this entry reports on
    status = Column(String(20), nullable=False)
    # status → ProgressStatus value
    hours_spent = Column(Integer, nullable=True)
    # hours_spent → stored in MINUTES despite the name, converted to hours
    # only when aggregated or returned
    notes = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    task = relationship("Task", back_populates="progress")


# =============================================================================
# ===================== TABLE 5: BADGES =======================================
# =============================================================================
# At most one badge per (user, name, challenge). The constraint does not cover
# challenge_id IS NULL (NULLs never compare equal in SQL); storage serialises
# those inserts itself.

class Badge(Base):
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    challenge_id = Column(Integer, ForeignKey("challenges.id"), nullable=True)
    # challenge_id → NULL means an account-level badge

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    earned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'name', 'challenge_id', name='uq_user_badge_challenge'),
    )

    user = relationship("User", back_populates="badges")
    challenge = relationship("Challenge")


# =============================================================================
# ===================== TABLE 6: USER_CONNECTIONS =============================
# =============================================================================
# Undirected relationship stored as one directed row: user_id is whoever sent
# the request, connected_user_id is whoever has to answer it.

class UserConnection(Base):
    __tablename__ = "user_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    connected_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), default=ConnectionStatus.pending.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    connected_user = relationship("User", foreign_keys=[connected_user_id])


# =============================================================================
# ===================== TABLE 7: SHARED_NOTES =================================
# =============================================================================

class SharedNote(Base):
    __tablename__ = "shared_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_progress_id = Column(Integer, ForeignKey("task_progress.id"), nullable=False)
    shared_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    shared_with_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    task_progress = relationship("TaskProgress")
    shared_by = relationship("User", foreign_keys=[shared_by_user_id])
    shared_with = relationship("User", foreign_keys=[shared_with_user_id])
