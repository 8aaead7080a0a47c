# corgi_buddy/db/session.py
from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from corgi_buddy.core.config import get_settings
from corgi_buddy.db.engine import build_engine

settings = get_settings()

engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
