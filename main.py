"""
=============================================================================
MAIN.PY — The Streakly API
=============================================================================
Defines every endpoint of the REST API.

Sections:
  1. AUTH         → Register, login, profile
  2. CHALLENGES   → Create, list, detail, complete
  3. PROGRESS     → Log daily progress for a task, history
  4. DASHBOARD    → Stats, activity feed, badges, streaks
  5. SOCIAL       → Search users, connections, shared notes
  6. SHARE        → Public read-only challenge page

The endpoints only translate HTTP ↔ domain. The logic lives in challenges.py,
progress.py, gamification.py, stats.py and social.py.
"""

import os
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, status, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import storage
from database import get_db, init_db
from models import User, Challenge
from schemas import *
from auth import hash_password, authenticate_user, create_access_token, get_current_user
from errors import StreaklyError, NotFoundError, PermissionDeniedError
from challenges import create_challenge, describe_challenge, mark_completed
from progress import log_progress, get_owned_task
from gamification import award_completion_badge, compute_streaks
from stats import get_user_stats, get_user_activity
import social

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("streakly.api")

APP_VERSION = "1.0.0"


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Creates the tables on startup. There is nothing to stop on shutdown."""
    logger.info("🚀 Starting Streakly...")
    init_db()
    logger.info("✅ Database initialised")
    yield
    logger.info("👋 Streakly stopped")


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI APPLICATION
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Streakly API",
    description="Time-boxed challenges, daily progress, streaks and badges",
    version=APP_VERSION,
    lifespan=lifespan,
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────
# Domain errors carry their own status code (400/403/404). Anything else is
# logged with its traceback and returned as a 500 with the real message.

@app.exception_handler(StreaklyError)
async def domain_exception_handler(request: Request, exc: StreaklyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_msg = str(exc)
    error_trace = traceback.format_exc()
    logger.error(f"❌ Unhandled error on {request.url}: {error_msg}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": error_msg,
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def get_owned_challenge(db: Session, user: User, challenge_id: int) -> Challenge:
    challenge = storage.get_challenge(db, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge", challenge_id)
    if challenge.user_id != user.id:
        raise PermissionDeniedError("Unauthorized")
    return challenge


def challenge_response(challenge: Challenge, with_tasks: bool = False) -> ChallengeResponse:
    schema = ChallengeDetailResponse if with_tasks else ChallengeResponse
    response = schema.model_validate(challenge)
    response.lifecycle = ChallengeLifecycle(**describe_challenge(challenge))
    return response


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "app": "Streakly",
        "version": APP_VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECTION 1: AUTH =======================================
# =============================================================================

@app.post("/auth/register", response_model=TokenResponse, tags=["Auth"])
def register(data: UserRegister, db: Session = Depends(get_db)):
    """Creates an account and logs it in"""
    if storage.get_user_by_username(db, data.username):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists"
        )
    if storage.get_user_by_email(db, data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists"
        )

    user = storage.create_user(
        db,
        username=data.username,
        email=data.email,
        name=data.name,
        password_hash=hash_password(data.password),
    )
    logger.info(f"👤 New user registered: {user.username}")

    return TokenResponse(
        access_token=create_access_token(user.id, user.username),
        user_id=user.id,
        username=user.username
    )


@app.post("/auth/login", response_model=TokenResponse, tags=["Auth"])
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, data.username, data.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    return TokenResponse(
        access_token=create_access_token(user.id, user.username),
        user_id=user.id,
        username=user.username
    )


@app.get("/auth/me", response_model=UserResponse, tags=["Auth"])
def get_me(user: User = Depends(get_current_user)):
    return user


# =============================================================================
# ===================== SECTION 2: CHALLENGES =================================
# =============================================================================

@app.get("/challenges", response_model=list[ChallengeResponse], tags=["Challenges"])
def list_challenges(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [challenge_response(c) for c in storage.get_challenges_by_user(db, user.id)]


@app.post(
    "/challenges",
    response_model=ChallengeDetailResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Challenges"],
)
def create_new_challenge(
    data: ChallengeCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Creates a challenge with its tasks.
    Tasks cannot be edited or removed afterwards.
    """
    challenge = create_challenge(
        db,
        owner_id=user.id,
        name=data.name,
        category=data.category,
        duration_days=data.duration,
        tasks=[t.model_dump() for t in data.tasks],
    )
    return challenge_response(challenge, with_tasks=True)


@app.get("/challenges/{challenge_id}", response_model=ChallengeDetailResponse, tags=["Challenges"])
def get_challenge_detail(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    challenge = get_owned_challenge(db, user, challenge_id)
    return challenge_response(challenge, with_tasks=True)


@app.get("/challenges/{challenge_id}/tasks", response_model=list[TaskResponse], tags=["Challenges"])
def list_challenge_tasks(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    challenge = get_owned_challenge(db, user, challenge_id)
    return storage.get_tasks_by_challenge(db, challenge.id)


@app.post("/challenges/{challenge_id}/complete", response_model=ChallengeResponse, tags=["Challenges"])
def complete_challenge(
    challenge_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Marks the challenge as completed (idempotent) and awards its badge"""
    challenge = get_owned_challenge(db, user, challenge_id)
    challenge = mark_completed(db, challenge.id)
    award_completion_badge(db, user.id, challenge)
    return challenge_response(challenge)


# =============================================================================
# ===================== SECTION 3: PROGRESS ===================================
# =============================================================================

@app.post(
    "/tasks/{task_id}/progress",
    response_model=ProgressResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Progress"],
)
def log_task_progress(
    task_id: int,
    data: ProgressCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Logs how a task went on a given day.

    Afterwards the challenge is re-evaluated: milestone badges and, once the
    last day is reached, completion.
    """
    entry = log_progress(
        db,
        user_id=user.id,
        task_id=task_id,
        date=data.date,
        status=data.status,
        hours_spent=data.hours_spent,
        notes=data.notes,
        image_url=data.image_url,
    )
    return ProgressResponse.from_entry(entry)


@app.get("/tasks/{task_id}/progress", response_model=list[ProgressResponse], tags=["Progress"])
def get_task_progress_history(
    task_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task = get_owned_task(db, user.id, task_id)
    return [ProgressResponse.from_entry(p) for p in storage.get_task_progress_by_task(db, task.id)]


# =============================================================================
# ===================== SECTION 4: DASHBOARD ==================================
# =============================================================================

@app.get("/user/stats", response_model=UserStats, tags=["Dashboard"])
def get_my_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_user_stats(db, user.id)


@app.get("/user/activity", response_model=list[ActivityItem], tags=["Dashboard"])
def get_my_activity(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_user_activity(db, user.id)


@app.get("/user/badges", response_model=list[BadgeResponse], tags=["Dashboard"])
def get_my_badges(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return storage.get_user_badges(db, user.id)


@app.get("/user/streaks", response_model=StreaksResponse, tags=["Dashboard"])
def get_my_streaks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return compute_streaks(db, user.id)


# =============================================================================
# ===================== SECTION 5: SOCIAL =====================================
# =============================================================================

@app.post("/user/search", response_model=list[PublicUserResponse], tags=["Social"])
def search_users(data: UserSearch, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return social.search_users(db, user.id, data.query)


@app.get("/user/connections", response_model=list[ConnectionResponse], tags=["Social"])
def get_my_connections(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Every connection the user sent or received, any status"""
    return social.list_connections(db, user.id)


@app.post(
    "/user/connections",
    response_model=ConnectionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Social"],
)
def request_connection(
    data: ConnectionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return social.request_connection(db, user.id, data.connected_user_id)


@app.patch("/user/connections/{connection_id}", response_model=ConnectionResponse, tags=["Social"])
def answer_connection(
    connection_id: int,
    data: ConnectionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return social.update_connection(db, user.id, connection_id, data.status)


@app.get("/user/connected-users", response_model=list[PublicUserResponse], tags=["Social"])
def get_connected_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return social.connected_users(db, user.id)


@app.post(
    "/user/share-note",
    response_model=SharedNoteResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Social"],
)
def share_note(data: ShareNoteRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    note = social.share_note(db, user.id, data.task_progress_id, data.shared_with_user_id)
    entry = storage.get_task_progress(db, note.task_progress_id)
    task = storage.get_task(db, entry.task_id)
    challenge = storage.get_challenge(db, task.challenge_id)
    return SharedNoteResponse(
        id=note.id,
        shared_by=PublicUserResponse.model_validate(user),
        shared_with_user_id=note.shared_with_user_id,
        task_name=task.name,
        challenge_name=challenge.name,
        progress=ProgressResponse.from_entry(entry),
        created_at=note.created_at,
    )


@app.get("/user/shared-notes", response_model=list[SharedNoteResponse], tags=["Social"])
def get_shared_notes(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Notes that connections shared with the user, newest first"""
    return [
        SharedNoteResponse(
            id=item["note"].id,
            shared_by=PublicUserResponse.model_validate(item["shared_by"]),
            shared_with_user_id=item["note"].shared_with_user_id,
            task_name=item["task"].name,
            challenge_name=item["challenge"].name,
            progress=ProgressResponse.from_entry(item["entry"]),
            created_at=item["note"].created_at,
        )
        for item in social.shared_notes_for(db, user.id)
    ]


# =============================================================================
# ===================== SECTION 6: PUBLIC SHARE PAGE ==========================
# =============================================================================

@app.get("/share/{user_id}/{challenge_id}", response_model=ShareProfileResponse, tags=["Share"])
def get_shared_profile(user_id: int, challenge_id: int, db: Session = Depends(get_db)):
    """
    Read-only view of one challenge, no authentication required.
    Only public user fields are returned (never email or password hash).
    """
    owner = storage.get_user(db, user_id)
    if owner is None:
        raise NotFoundError("User", user_id)

    challenge = storage.get_challenge(db, challenge_id)
    if challenge is None or challenge.user_id != user_id:
        raise NotFoundError("Challenge", challenge_id)

    groups = [
        TaskProgressGroup(
            task=TaskResponse.model_validate(task),
            progress=[ProgressResponse.from_entry(p) for p in storage.get_task_progress_by_task(db, task.id)],
        )
        for task in storage.get_tasks_by_challenge(db, challenge.id)
    ]

    return ShareProfileResponse(
        user=PublicUserResponse.model_validate(owner),
        challenge=challenge_response(challenge),
        progress=groups,
    )
