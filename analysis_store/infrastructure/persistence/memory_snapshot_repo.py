import copy
from typing import Dict, Optional

from ...application.ports.snapshot_repo import SnapshotRepository, StoreSnapshot


class InMemorySnapshotRepository(SnapshotRepository):
    def __init__(self) -> None:
        self._store: Dict[str, StoreSnapshot] = {}
        self.saves = 0

    def load(self, name: str) -> Optional[StoreSnapshot]:
        snapshot = self._store.get(name)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def save(self, snapshot: StoreSnapshot) -> None:
        self._store[snapshot.name] = copy.deepcopy(snapshot)
        self.saves += 1

    def clear(self, name: str) -> None:
        self._store.pop(name, None)
