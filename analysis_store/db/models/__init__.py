# Models package (re-export feature modules for stable imports)
from .store.snapshot import StoreSnapshotRow

__all__ = [
    "StoreSnapshotRow",
]
