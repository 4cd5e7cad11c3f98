from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


@dataclass
class StoreSnapshot:
    name: str
    version: int
    state: Dict[str, Any] = field(default_factory=dict)


class SnapshotRepository(Protocol):
    def load(self, name: str) -> Optional[StoreSnapshot]:
        ...

    def save(self, snapshot: StoreSnapshot) -> None:
        ...

    def clear(self, name: str) -> None:
        ...
