import json
import logging
import os
import tempfile
from typing import Optional

from ...application.ports.snapshot_repo import SnapshotRepository, StoreSnapshot
from ...exceptions import PersistError

logger = logging.getLogger(__name__)


class FileSnapshotRepository(SnapshotRepository):
    """One JSON document per store name inside ``directory``."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def _path(self, name: str) -> str:
        return os.path.join(self.directory, f"{name}.json")

    def load(self, name: str) -> Optional[StoreSnapshot]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt snapshot file {path}: {e}")
            return None
        except OSError as e:
            raise PersistError(name, f"could not read {path}: {e}") from e
        if not isinstance(data, dict):
            logger.warning(f"Ignoring snapshot file {path}: not a JSON object")
            return None
        return StoreSnapshot(name=name, version=data.get("version", 0), state=data.get("state") or {})

    def save(self, snapshot: StoreSnapshot) -> None:
        path = self._path(snapshot.name)
        document = {"state": snapshot.state, "version": snapshot.version}
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{snapshot.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, default=str)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistError(snapshot.name, f"could not write {path}: {e}") from e

    def clear(self, name: str) -> None:
        path = self._path(name)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            raise PersistError(name, f"could not remove {path}: {e}") from e
