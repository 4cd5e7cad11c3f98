import json
import logging
from typing import Optional

try:
    import redis
except Exception:  # pragma: no cover
    redis = None

from ...application.ports.snapshot_repo import SnapshotRepository, StoreSnapshot
from ...exceptions import PersistError

logger = logging.getLogger(__name__)


class RedisSnapshotRepository(SnapshotRepository):
    def __init__(self, url: str, prefix: str = "snapshot:") -> None:
        if redis is None:
            raise RuntimeError("redis package is not installed")
        self.client = redis.Redis.from_url(url)
        self.prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def load(self, name: str) -> Optional[StoreSnapshot]:
        try:
            raw = self.client.get(self._key(name))
        except redis.RedisError as e:
            raise PersistError(name, f"redis read failed: {e}") from e
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring corrupt snapshot at {self._key(name)}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring snapshot at {self._key(name)}: not a JSON object")
            return None
        return StoreSnapshot(name=name, version=data.get("version", 0), state=data.get("state") or {})

    def save(self, snapshot: StoreSnapshot) -> None:
        try:
            document = json.dumps({"state": snapshot.state, "version": snapshot.version}, default=str)
        except (TypeError, ValueError) as e:
            raise PersistError(snapshot.name, f"snapshot is not serializable: {e}") from e
        try:
            self.client.set(self._key(snapshot.name), document)
        except redis.RedisError as e:
            raise PersistError(snapshot.name, f"redis write failed: {e}") from e

    def clear(self, name: str) -> None:
        try:
            self.client.delete(self._key(name))
        except redis.RedisError as e:
            raise PersistError(name, f"redis delete failed: {e}") from e
