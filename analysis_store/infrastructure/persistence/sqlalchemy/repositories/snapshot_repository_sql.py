import json
import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .....db.models import StoreSnapshotRow
from .....application.ports.snapshot_repo import SnapshotRepository, StoreSnapshot
from .....exceptions import PersistError

logger = logging.getLogger(__name__)


class SqlSnapshotRepository(SnapshotRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self, name: str) -> Optional[StoreSnapshot]:
        try:
            with Session(self.engine) as session:
                row = session.get(StoreSnapshotRow, name)
        except SQLAlchemyError as e:
            raise PersistError(name, f"database read failed: {e}") from e
        if row is None:
            return None
        try:
            state = json.loads(row.payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt snapshot row {name}: {e}")
            return None
        return StoreSnapshot(name=row.name, version=row.version, state=state)

    def save(self, snapshot: StoreSnapshot) -> None:
        try:
            payload = json.dumps(snapshot.state, default=str)
        except (TypeError, ValueError) as e:
            raise PersistError(snapshot.name, f"snapshot is not serializable: {e}") from e
        try:
            with Session(self.engine) as session:
                row = session.get(StoreSnapshotRow, snapshot.name)
                if row is None:
                    row = StoreSnapshotRow(name=snapshot.name, version=snapshot.version, payload=payload)
                else:
                    row.version = snapshot.version
                    row.payload = payload
                    row.updated_at = datetime.now(timezone.utc)
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            raise PersistError(snapshot.name, f"database write failed: {e}") from e

    def clear(self, name: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.get(StoreSnapshotRow, name)
                if row is not None:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as e:
            raise PersistError(name, f"database delete failed: {e}") from e
