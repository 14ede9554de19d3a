# poliprint/database.py
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from poliprint.core.config import get_settings


def _build_engine(db_url: str) -> Engine:
    """
    Build the orders DB engine.

    Postgres (production, via pooler):
      - sslmode=require    : enforce SSL when running in the cloud
      - pool_size=1        : keep only 1 connection per process to the pooler
      - max_overflow=0     : do not open extra connections beyond the pool
      - pool_pre_ping=True : validate connections before using them

    SQLite (development):
      - check_same_thread=False so FastAPI's threadpool can share it
    """
    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

    if db_url.startswith("postgres") and "sslmode=" not in db_url:
        separator = "&" if "?" in db_url else "?"
        db_url = f"{db_url}{separator}sslmode=require"

    return create_engine(
        db_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
    )


engine = _build_engine(get_settings().DATABASE_URL)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
