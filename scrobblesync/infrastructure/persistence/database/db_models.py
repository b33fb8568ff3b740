"""SQLAlchemy database models for ScrobbleSync local state.

Times are stored as integer unix seconds; SQLite has no timezone-aware
datetime type and every time in the domain is whole-second UTC.
"""

from sqlalchemy import Boolean, Float, Index, MetaData, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Define naming convention for constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_label)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

# Create metadata with naming convention
metadata = MetaData(naming_convention=convention)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ScrobbleSync database models."""

    metadata = metadata

    id: Mapped[int] = mapped_column(primary_key=True)


class DBSubmittedPlay(Base):
    """A play id that Last.fm has accepted, kept for the retention window."""

    __tablename__ = "submitted_plays"

    source_id: Mapped[str] = mapped_column(String(255), unique=True)
    submitted_at: Mapped[int] = mapped_column(index=True)


class DBSyncState(Base):
    """Key/value application state (watermark, onboarding flag)."""

    __tablename__ = "sync_state"

    key: Mapped[str] = mapped_column(String(64), unique=True)
    value: Mapped[str] = mapped_column(Text)


class DBScrobble(Base):
    """Snapshot row of the local scrobble log."""

    __tablename__ = "scrobble_log"

    record_id: Mapped[str] = mapped_column(String(36), unique=True)
    track_name: Mapped[str] = mapped_column(String(255))
    artist_name: Mapped[str] = mapped_column(String(255))
    album_name: Mapped[str] = mapped_column(String(255))
    played_at: Mapped[int]
    status: Mapped[str] = mapped_column(String(16))
    error_message: Mapped[str | None] = mapped_column(Text)
    artwork_ref: Mapped[str | None] = mapped_column(Text)
    source_id: Mapped[str | None] = mapped_column(String(255))
    duration: Mapped[float | None] = mapped_column(Float)
    is_estimated: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (Index(None, "played_at"), Index(None, "status"))
