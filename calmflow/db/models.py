from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import JSON, String, DateTime, func
from datetime import datetime

class Base(DeclarativeBase):
    pass

class SessionSnapshotRow(Base):
    """Key-value row holding one persisted session snapshot (last write wins)."""
    __tablename__ = "session_snapshots"
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
