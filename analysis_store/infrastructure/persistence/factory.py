import logging

from ...application.ports.snapshot_repo import SnapshotRepository
from ...config import Settings

logger = logging.getLogger(__name__)


def build_snapshot_repository(settings: Settings) -> SnapshotRepository:
    backend = settings.SNAPSHOT_BACKEND.strip().lower()
    logger.info(f"Using '{backend}' snapshot backend for store '{settings.STORE_NAME}'")

    if backend == "memory":
        from .memory_snapshot_repo import InMemorySnapshotRepository
        return InMemorySnapshotRepository()

    if backend == "file":
        from .file_snapshot_repo import FileSnapshotRepository
        return FileSnapshotRepository(settings.SNAPSHOT_DIR)

    if backend == "sql":
        from ...database import build_engine, create_db_and_tables
        from .sqlalchemy.repositories.snapshot_repository_sql import SqlSnapshotRepository
        engine = build_engine(settings.DATABASE_URL)
        create_db_and_tables(engine)
        return SqlSnapshotRepository(engine)

    if backend == "redis":
        if not settings.REDIS_URL:
            raise ValueError("REDIS_URL must be set for the redis snapshot backend")
        from .redis_snapshot_repo import RedisSnapshotRepository
        return RedisSnapshotRepository(settings.REDIS_URL, prefix=settings.REDIS_PREFIX)

    raise ValueError(f"Unknown SNAPSHOT_BACKEND '{settings.SNAPSHOT_BACKEND}'")
