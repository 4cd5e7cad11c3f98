# analysis_store/db/models/store/snapshot.py
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreSnapshotRow(SQLModel, table=True):
    __tablename__ = "store_snapshots"
    name: str = Field(primary_key=True, max_length=100)
    version: int
    payload: str
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
