from sqlalchemy import Column, DateTime, Index, Integer, String, func, text
from app.core.db import Base

# Slugs are unique among live rows only, deleted slugs can be reused
LIVE_ROWS = text("deleted_at IS NULL")


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (
        Index("ux_tags_slug_live", "slug", unique=True, postgresql_where=LIVE_ROWS, sqlite_where=LIVE_ROWS),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    slug = Column(String(100), nullable=False)
    color = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)


class NewsCategory(Base):
    __tablename__ = "news_categories"
    __table_args__ = (
        Index(
            "ux_news_categories_slug_live", "slug", unique=True, postgresql_where=LIVE_ROWS, sqlite_where=LIVE_ROWS
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    color = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)


class EventCategory(Base):
    __tablename__ = "event_categories"
    __table_args__ = (
        Index(
            "ux_event_categories_slug_live", "slug", unique=True, postgresql_where=LIVE_ROWS, sqlite_where=LIVE_ROWS
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    color = Column(String(20), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)
