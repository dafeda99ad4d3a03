"""
=============================================================================
DATABASE.PY — Database configuration
=============================================================================
Sets up the connection to the database.

In DEVELOPMENT: SQLite (a local .db file)
In PRODUCTION: PostgreSQL

How does it pick one?
→ If the DATABASE_URL environment variable exists, it is used as-is.
→ Otherwise a local SQLite file is used.

Tests use "sqlite://" (in-memory). In that case every session must share a
single connection, otherwise each one would see its own empty database.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# ─────────────────────────────────────────────────────────────────────────────
# CONNECTION
# ─────────────────────────────────────────────────────────────────────────────

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:")


def normalize_url(url: str) -> str:
    """Hosting providers hand out "postgres://", psycopg (v3) needs "postgresql+psycopg://" """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────

def make_engine(url: str):
    """
    Engine for any supported URL.

      SQLite file   → check_same_thread=False (sync endpoints run in a thread pool)
      SQLite memory → same, plus one shared connection (StaticPool)
      PostgreSQL    → pool_pre_ping, dead connections are replaced silently
    """
    url = normalize_url(url)
    engine_args = {}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
        if url in IN_MEMORY_URLS:
            engine_args["poolclass"] = StaticPool
    else:
        engine_args["pool_pre_ping"] = True
    return create_engine(url, echo=False, **engine_args)


DATABASE_URL = normalize_url(os.getenv("DATABASE_URL", "sqlite:///./streakly.db"))
engine = make_engine(DATABASE_URL)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────
# Every model (User, Challenge, Task...) inherits from this class.

Base = declarative_base()


def get_db():
    """
    Yields a database session and closes it afterwards.

    Used as a FastAPI dependency:
      @app.get("/something")
      def endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Creates every table that does not exist yet.
    Called once when the application starts.
    """
    # Importing the models registers their tables on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
