"""
=============================================================================
SCHEMAS.PY — Validation schemas (Pydantic)
=============================================================================
Models (SQLAlchemy) define the TABLES.
Schemas (Pydantic) define what the API ACCEPTS and RETURNS.

If a request body is malformed (missing field, wrong type, duration < 1...)
FastAPI answers 422 before any of our code runs.

Naming convention:
  XxxCreate   → body of a POST
  XxxResponse → what the API returns
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from models import ActivityType, ProgressStatus


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(BaseModel):
    """Data needed to create an account"""
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6, description="At least 6 characters")

class UserLogin(BaseModel):
    username: str
    password: str

class TokenResponse(BaseModel):
    """JWT returned after register/login"""
    access_token: str
    token_type: str = "bearer"
    user_id: int
    username: str

class UserResponse(BaseModel):
    """The authenticated user (never includes the password hash)"""
    id: int
    username: str
    email: str
    name: str
    created_at: datetime
    model_config = {"from_attributes": True}

class PublicUserResponse(BaseModel):
    """What other users (and the public share page) can see"""
    id: int
    username: str
    name: str
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== CHALLENGES & TASKS ====================================
# =============================================================================

class TaskCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    scheduled_time: Optional[str] = Field(default=None, description="HH:MM")

class ChallengeCreate(BaseModel):
    name: str = Field(min_length=3, max_length=200)
    category: str = Field(min_length=1, max_length=50)
    duration: int = Field(ge=1, description="In days")
    tasks: list[TaskCreate] = Field(min_length=1)

class TaskResponse(BaseModel):
    id: int
    challenge_id: int
    name: str
    scheduled_time: Optional[str]
    created_at: datetime
    model_config = {"from_attributes": True}

class ChallengeLifecycle(BaseModel):
    """Day N of M, derived from start date + duration"""
    day: int
    total_days: int
    progress_percentage: int
    days_remaining: int
    state: str

class ChallengeResponse(BaseModel):
    id: int
    user_id: int
    name: str
    category: str
    duration: int
    start_date: datetime
    end_date: datetime
    is_completed: bool
    created_at: datetime
    lifecycle: Optional[ChallengeLifecycle] = None
    model_config = {"from_attributes": True}

class ChallengeDetailResponse(ChallengeResponse):
    tasks: list[TaskResponse] = []


# =============================================================================
# ===================== PROGRESS ==============================================
# =============================================================================

class ProgressCreate(BaseModel):
    """hours_spent is in hours here (2.5), it is stored in minutes (150)"""
    date: datetime
    status: ProgressStatus
    hours_spent: Optional[float] = Field(default=None, ge=0, le=24, allow_inf_nan=False)
    notes: Optional[str] = None
    image_url: Optional[str] = Field(default=None, max_length=500)

class ProgressResponse(BaseModel):
    """
    The database column hours_spent holds minutes, so this one is built with
    from_entry() instead of from_attributes.
    """
    id: int
    task_id: int
    date: datetime
    status: str
    minutes_spent: Optional[int] = None
    hours_spent: Optional[float] = None
    notes: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_entry(cls, entry) -> "ProgressResponse":
        minutes = entry.hours_spent
        return cls(
            id=entry.id,
            task_id=entry.task_id,
            date=entry.date,
            status=entry.status,
            minutes_spent=minutes,
            hours_spent=minutes / 60 if minutes is not None else None,
            notes=entry.notes,
            image_url=entry.image_url,
            created_at=entry.created_at,
        )


# =============================================================================
# ===================== GAMIFICATION ==========================================
# =============================================================================

class BadgeResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: Optional[int]
    name: str
    description: str
    earned_at: datetime
    model_config = {"from_attributes": True}

class StreaksResponse(BaseModel):
    current_streak: int
    longest_streak: int

class UserStats(BaseModel):
    """Dashboard counters"""
    active_challenges: int
    completed_tasks: int
    total_tasks: int
    hours_logged: float
    badges_count: int
    current_streak: int
    longest_streak: int

class ActivityItem(BaseModel):
    """
    One feed entry. Which optional fields are set depends on type:
      created / completed (challenge) → only challenge fields
      completed / missed (task)       → task_*, hours_spent, status
      badge                           → badge_*
    """
    id: int
    type: ActivityType
    challenge_id: int
    challenge_name: str
    task_id: Optional[int] = None
    task_name: Optional[str] = None
    badge_id: Optional[int] = None
    badge_name: Optional[str] = None
    date: datetime
    hours_spent: Optional[float] = None
    status: Optional[str] = None


# =============================================================================
# ===================== SOCIAL ================================================
# =============================================================================

class UserSearch(BaseModel):
    query: str = Field(min_length=1, max_length=50)

class ConnectionRequest(BaseModel):
    connected_user_id: int = Field(gt=0)

class ConnectionUpdate(BaseModel):
    status: Literal["accepted", "rejected"]

class ConnectionResponse(BaseModel):
    id: int
    user_id: int
    connected_user_id: int
    status: str
    created_at: datetime
    updated_at: datetime
    user: PublicUserResponse
    connected_user: PublicUserResponse
    model_config = {"from_attributes": True}

class ShareNoteRequest(BaseModel):
    task_progress_id: int = Field(gt=0)
    shared_with_user_id: int = Field(gt=0)

class SharedNoteResponse(BaseModel):
    id: int
    shared_by: PublicUserResponse
    shared_with_user_id: int
    task_name: str
    challenge_name: str
    progress: ProgressResponse
    created_at: datetime


# =============================================================================
# ===================== PUBLIC SHARE PAGE =====================================
# =============================================================================

class TaskProgressGroup(BaseModel):
    task: TaskResponse
    progress: list[ProgressResponse]

class ShareProfileResponse(BaseModel):
    user: PublicUserResponse
    challenge: ChallengeResponse
    progress: list[TaskProgressGroup]
