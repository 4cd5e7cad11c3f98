import os
from sqlmodel import SQLModel, create_engine
from sqlalchemy.engine import Engine
from .config import settings


def build_engine(db_url: str) -> Engine:
    # Choose engine options based on database scheme
    engine_kwargs = {}
    if db_url.startswith("sqlite"):
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })
    return create_engine(db_url, echo=settings.DEBUG, **engine_kwargs)


def _ensure_sqlite_dir(db_url: str) -> None:
    if not db_url.startswith("sqlite:///"):
        return
    db_path = db_url.replace("sqlite:///", "")
    directory = os.path.dirname(db_path)
    if db_path != ":memory:" and directory:
        os.makedirs(directory, exist_ok=True)


def create_db_and_tables(engine: Engine) -> None:
    _ensure_sqlite_dir(str(engine.url))
    # table models register themselves on SQLModel.metadata when imported
    from .db import models  # noqa: F401
    SQLModel.metadata.create_all(engine)
