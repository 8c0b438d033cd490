# lifegroups/db.py
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from .config import settings

# ──────────────────────────────────────────────────────────────────────────────────────────
#                  SQLAlchemy setup (snapshot store)
# ──────────────────────────────────────────────────────────────────────────────────────────

DATABASE_URL = settings.DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    future=True,
)

# Declarative base for all ORM models
Base = declarative_base()


@contextmanager
def connect():
    # begin() = transaction w/ auto-commit on exit (OK for writes & reads)
    with engine.begin() as conn:
        yield conn


def create_tables():
    # local import registers the models on Base
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
