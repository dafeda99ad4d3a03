"""
=============================================================================
SOCIAL.PY — Connections between users and shared notes
=============================================================================
  A ──request──→ B        (pending, stored as user_id=A, connected_user_id=B)
  B ──accept/reject──→    (only B can answer)

Once accepted, either of them can share one of their own progress notes with
the other.
"""

import logging

from sqlalchemy.orm import Session

import storage
from errors import ValidationError, NotFoundError, PermissionDeniedError
from models import ConnectionStatus, SharedNote, User, UserConnection

logger = logging.getLogger("streakly.social")

SEARCH_LIMIT = 20


def search_users(db: Session, user_id: int, query: str) -> list[User]:
    query = (query or "").strip()
    if not query or len(query) > 50:
        raise ValidationError("Search query must be between 1 and 50 characters")
    return storage.search_users(db, query, exclude_user_id=user_id, limit=SEARCH_LIMIT)


# =============================================================================
# ===================== CONNECTIONS ===========================================
# =============================================================================

def request_connection(db: Session, user_id: int, connected_user_id: int) -> UserConnection:
    """
    Sends a connection request. If the two users already have a connection
    row (in either direction, any status) that row is returned instead.
    """
    if connected_user_id == user_id:
        raise ValidationError("You cannot connect with yourself")
    if storage.get_user(db, connected_user_id) is None:
        raise NotFoundError("User", connected_user_id)

    existing = storage.find_connection_between(db, user_id, connected_user_id)
    if existing:
        return existing

    connection = storage.create_connection(db, user_id, connected_user_id)
    logger.info(f"🤝 Connection requested: user {user_id} → user {connected_user_id}")
    return connection


def update_connection(db: Session, user_id: int, connection_id: int, status: str) -> UserConnection:
    """Accepts or rejects a request. Only the user who received it can answer."""
    try:
        new_status = ConnectionStatus(status)
    except ValueError:
        raise ValidationError("Status must be either 'accepted' or 'rejected'")
    if new_status is ConnectionStatus.pending:
        raise ValidationError("Status must be either 'accepted' or 'rejected'")

    connection = storage.get_connection(db, connection_id)
    if connection is None:
        raise NotFoundError("Connection", connection_id)
    if connection.connected_user_id != user_id:
        raise PermissionDeniedError("Only the recipient can answer a connection request")

    connection = storage.update_connection_status(db, connection, new_status.value)
    logger.info(f"🤝 Connection {connection.id} {new_status.value} by user {user_id}")
    return connection


def list_connections(db: Session, user_id: int) -> list[UserConnection]:
    return storage.get_connections_for(db, user_id)


def connected_users(db: Session, user_id: int) -> list[User]:
    """The other party of every accepted connection"""
    users = []
    for connection in storage.get_connections_for(db, user_id):
        if connection.status != ConnectionStatus.accepted.value:
            continue
        other_id = (
            connection.connected_user_id if connection.user_id == user_id else connection.user_id
        )
        other = storage.get_user(db, other_id)
        if other is not None:
            users.append(other)
    return users


def are_connected(db: Session, user_a: int, user_b: int) -> bool:
    connection = storage.find_connection_between(db, user_a, user_b)
    return connection is not None and connection.status == ConnectionStatus.accepted.value


# =============================================================================
# ===================== SHARED NOTES ==========================================
# =============================================================================

def share_note(db: Session, user_id: int, task_progress_id: int, shared_with_user_id: int) -> SharedNote:
    """
    Shares one of the user's own progress entries with an accepted connection.
    """
    entry = storage.get_task_progress(db, task_progress_id)
    if entry is None:
        raise NotFoundError("Task progress", task_progress_id)

    task = storage.get_task(db, entry.task_id)
    challenge = storage.get_challenge(db, task.challenge_id) if task else None
    if challenge is None or challenge.user_id != user_id:
        raise PermissionDeniedError("You can only share your own notes")

    if storage.get_user(db, shared_with_user_id) is None:
        raise NotFoundError("User", shared_with_user_id)
    if not are_connected(db, user_id, shared_with_user_id):
        raise PermissionDeniedError("You can only share notes with your connections")

    note = storage.create_shared_note(db, task_progress_id, user_id, shared_with_user_id)
    logger.info(f"📤 Note {task_progress_id} shared: user {user_id} → user {shared_with_user_id}")
    return note


def shared_notes_for(db: Session, user_id: int) -> list[dict]:
    """
    Notes shared with the user, newest first, with the names needed to show
    them. Notes whose task or challenge cannot be loaded are skipped.
    """
    notes = []
    for note in storage.get_shared_notes_for(db, user_id):
        entry = storage.get_task_progress(db, note.task_progress_id)
        task = storage.get_task(db, entry.task_id) if entry else None
        challenge = storage.get_challenge(db, task.challenge_id) if task else None
        sharer = storage.get_user(db, note.shared_by_user_id)
        if challenge is None or sharer is None:
            continue
        notes.append({
            "note": note,
            "entry": entry,
            "task": task,
            "challenge": challenge,
            "shared_by": sharer,
        })
    return notes
