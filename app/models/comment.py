from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship
from app.core.db import Base


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (Index("ix_comments_entity", "entity_type", "entity_id"),)

    id = Column(Integer, primary_key=True, index=True)
    # Polymorphic reference without a foreign key: news, application or event
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_approved = Column(Boolean, nullable=False, default=True)
    is_flagged = Column(Boolean, nullable=False, default=False)
    moderated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])


class CommentSettings(Base):
    __tablename__ = "comment_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    news_enabled = Column(Boolean, nullable=False, default=True)
    applications_enabled = Column(Boolean, nullable=False, default=False)
    events_enabled = Column(Boolean, nullable=False, default=True)
    require_moderation = Column(Boolean, nullable=False, default=False)
    max_length = Column(Integer, nullable=False, default=1000)
