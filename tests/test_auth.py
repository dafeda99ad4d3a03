from sqlalchemy.pool import StaticPool

import storage
from auth import authenticate_user, create_access_token, decode_token, hash_password
from database import make_engine, normalize_url


def test_authenticate_user(db):
    storage.create_user(db, "zoe", "zoe@example.com", "Zoe", hash_password("correct horse"))

    assert authenticate_user(db, "zoe", "correct horse").username == "zoe"
    assert authenticate_user(db, "zoe", "wrong horse") is None
    assert authenticate_user(db, "nobody", "correct horse") is None


def test_token_round_trip():
    payload = decode_token(create_access_token(42, "zoe"))
    assert payload["sub"] == "42"
    assert payload["username"] == "zoe"
    assert decode_token("garbage") is None


def test_postgres_urls_use_psycopg():
    assert normalize_url("postgres://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert normalize_url("postgresql://u:p@host/db") == "postgresql+psycopg://u:p@host/db"
    assert normalize_url("sqlite:///./streakly.db") == "sqlite:///./streakly.db"


def test_in_memory_sqlite_shares_one_connection(tmp_path):
    assert isinstance(make_engine("sqlite://").pool, StaticPool)
    assert not isinstance(make_engine(f"sqlite:///{tmp_path / 'x.db'}").pool, StaticPool)
