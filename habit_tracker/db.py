"""Engine construction and the per-request session dependency."""
from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import Settings


def build_engine(settings: Settings) -> Engine:
    kwargs = {"echo": settings.database_echo}
    if settings.is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in settings.database_url or settings.database_url == "sqlite://":
            # one shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(settings.database_url, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Iterator[Session]:
    """
    Yield a session bound to the application's engine.

    Handlers commit explicitly. Anything left uncommitted when the handler
    raises is rolled back, so a failed request never leaves a half-applied
    check-in or XP change behind.
    """
    engine: Engine = request.app.state.engine
    with Session(engine) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
