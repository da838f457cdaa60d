from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text
)
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.associations import news_tags, news_target_groups

REACTION_TYPES = ("like", "love", "laugh", "wow", "sad", "angry")


class News(Base):
    __tablename__ = "news"
    __table_args__ = (
        Index(
            "ux_news_slug_live",
            "slug",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False)
    summary = Column(String(500), nullable=True)
    content = Column(Text, nullable=False, default="")
    image_url = Column(String(500), nullable=True)
    category_id = Column(Integer, ForeignKey("news_categories.id", ondelete="SET NULL"), nullable=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime, nullable=True)
    is_pinned = Column(Boolean, nullable=False, default=False)
    views_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)

    author = relationship("User")
    category = relationship("NewsCategory")
    tags = relationship("Tag", secondary=news_tags)
    target_groups = relationship("Group", secondary=news_target_groups)


class NewsReaction(Base):
    __tablename__ = "news_reactions"
    __table_args__ = (UniqueConstraint("user_id", "news_id", name="uq_news_reactions_user_news"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    news_id = Column(Integer, ForeignKey("news.id", ondelete="CASCADE"), nullable=False, index=True)
    reaction_type = Column(String(20), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class NewsRead(Base):
    __tablename__ = "news_reads"
    __table_args__ = (UniqueConstraint("user_id", "news_id", name="uq_news_reads_user_news"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    news_id = Column(Integer, ForeignKey("news.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, server_default=func.now())
