"""
Database layer — async PostgreSQL via SQLAlchemy 2.0 + asyncpg.

Provides:
    • Async engine and session factory
    • Dependency injection for FastAPI routes
    • ORM models for the two tables the feed reads (posts, users)
    • Read-only loaders used by the feed pipeline

Locations are stored as GeoJSON points, `{"type": "Point",
"coordinates": [lng, lat]}`, exactly as the post and profile forms submit
them. Posts are always loaded in full; the store is never asked to do a
geo query.

Usage:
    from backend.app.core.database import get_db, load_all_posts

    @router.get("/posts")
    async def list_posts(db: AsyncSession = Depends(get_db)):
        return await load_all_posts(db)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from backend.app.core.config import settings
from backend.app.spatial.geo_math import coordinate_from_geojson_point
from backend.app.spatial.location_resolver import UserLocationProfile

logger = logging.getLogger(__name__)


# ── Engine ──
engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    echo=settings.DATABASE_ECHO,
)

# ── Session Factory ──
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    """A community report, or a news item ingested as a post."""
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(300))
    description: Mapped[str] = mapped_column(Text, default="")
    # fire | flood | earthquake | hurricane | tornado | other | news
    type: Mapped[str] = mapped_column(String(32))
    location: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    author: Mapped[str] = mapped_column(String(100))
    author_id: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # news items only
    external_id: Mapped[Optional[str]] = mapped_column(String(200), index=True, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "location": self.location,
            "author": self.author,
            "created_at": self.created_at,
            "source": self.source,
            "category": self.category,
            "link": self.link,
            "published_at": self.published_at,
        }


class User(Base):
    """Profile fields the feed needs; credentials live with the auth service."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True)
    role: Mapped[str] = mapped_column(String(20), default="user")  # user | ngo | moderator | admin
    location: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    radius_miles: Mapped[int] = mapped_column(Integer, default=50)


# ── Dependency ──
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Loaders ──
async def load_all_posts(session: AsyncSession) -> List[Dict[str, Any]]:
    """Every post, as plain dicts for the community adapter."""
    result = await session.execute(select(Post))
    posts = [post.to_dict() for post in result.scalars().all()]
    logger.debug("Loaded %d posts", len(posts))
    return posts


def profile_from_user(user: User) -> UserLocationProfile:
    """Location profile of a stored user; sentinel/malformed points → None."""
    return UserLocationProfile(
        coordinate=coordinate_from_geojson_point(user.location),
        radius_miles=user.radius_miles,
    )


async def load_profile(session: AsyncSession, user_id: str) -> Optional[UserLocationProfile]:
    """Location profile for a user id, or None if the user does not exist."""
    user = await session.get(User, user_id)
    if user is None:
        return None
    return profile_from_user(user)


# ── Lifecycle ──
async def init_db() -> None:
    """Create all tables (dev/test only — use migrations in production)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def close_db() -> None:
    """Dispose engine connections."""
    await engine.dispose()
    logger.info("Database connections closed")
