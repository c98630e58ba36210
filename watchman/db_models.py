"""SQLAlchemy ORM models backing the personal library."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class LibraryItem(Base):
    """Watchlist/watched/rating state for one movie or show."""

    __tablename__ = "library_items"
    __table_args__ = (
        UniqueConstraint("title_id", "media_type", name="uq_library_title"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title_id: Mapped[int] = mapped_column(Integer, index=True)
    media_type: Mapped[str] = mapped_column(String(8))
    title_name: Mapped[str] = mapped_column(String(255))
    poster_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_watchlist: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_watched: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    user_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    modified_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def unique_id(self) -> str:
        return f"{self.media_type}_{self.title_id}"

    @property
    def is_rated(self) -> bool:
        return self.user_rating is not None

    @property
    def is_empty(self) -> bool:
        return not self.is_watchlist and not self.is_watched and self.user_rating is None


class WatchedEpisode(Base):
    """Marker recording that one episode of a show has been watched."""

    __tablename__ = "watched_episodes"
    __table_args__ = (
        UniqueConstraint(
            "show_id", "season_number", "episode_number", name="uq_watched_episode"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    show_id: Mapped[int] = mapped_column(Integer, index=True)
    season_number: Mapped[int] = mapped_column(Integer)
    episode_number: Mapped[int] = mapped_column(Integer)
    episode_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    still_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    watched_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def unique_id(self) -> str:
        return f"{self.show_id}_S{self.season_number}E{self.episode_number}"


class SavedTitle(Base):
    """Title detail payload kept for offline browsing."""

    __tablename__ = "saved_titles"
    __table_args__ = (
        UniqueConstraint("title_id", "media_type", name="uq_saved_title"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title_id: Mapped[int] = mapped_column(Integer)
    media_type: Mapped[str] = mapped_column(String(8))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)
    saved_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
