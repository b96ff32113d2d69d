from __future__ import annotations
from datetime import date, datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Date, JSON, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..schedule import utcnow

class Base(DeclarativeBase):
    pass

class CatalogRow(Base):
    """One tracked series, keyed by its MyAnimeList id."""
    __tablename__ = "catalog_records"
    series_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    anilist_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    latest_episode: Mapped[int] = mapped_column(Integer, default=0)
    episode_aired_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    episode_added_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)
    last_refreshed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[Optional[str]] = mapped_column(String(40), index=True)
    title: Mapped[str] = mapped_column(String(500), default="Unknown")
    title_english: Mapped[Optional[str]] = mapped_column(String(500))
    title_native: Mapped[Optional[str]] = mapped_column(String(500))
    image_url: Mapped[Optional[str]] = mapped_column(String(1000))
    banner_url: Mapped[Optional[str]] = mapped_column(String(1000))
    synopsis: Mapped[Optional[str]] = mapped_column(String(8000))
    genres: Mapped[Optional[list]] = mapped_column(JSON)
    tags: Mapped[Optional[list]] = mapped_column(JSON)
    studios: Mapped[Optional[list]] = mapped_column(JSON)
    score: Mapped[Optional[int]] = mapped_column(Integer)
    total_episodes: Mapped[Optional[int]] = mapped_column(Integer)
    season: Mapped[Optional[str]] = mapped_column(String(20))
    season_year: Mapped[Optional[int]] = mapped_column(Integer)
    format: Mapped[Optional[str]] = mapped_column(String(20))
    country: Mapped[Optional[str]] = mapped_column(String(4))
    started_on: Mapped[Optional[date]] = mapped_column(Date)
    site_url: Mapped[Optional[str]] = mapped_column(String(1000))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

class SeenEpisode(Base):
    """First sighting of (series, episode); pruned once its airing time leaves the window."""
    __tablename__ = "seen_episodes"
    series_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    episode: Mapped[int] = mapped_column(Integer, primary_key=True)
    aired_at: Mapped[datetime] = mapped_column(DateTime)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    __table_args__ = (
        Index("ix_seen_episodes_aired_at", "aired_at"),
    )
