from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.associations import event_tags, event_target_groups

EVENT_STATUSES = ("draft", "confirmed", "cancelled", "postponed")
EVENT_PRIORITIES = ("low", "normal", "high", "urgent")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index(
            "ux_events_slug_live",
            "slug",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=True)
    all_day = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="confirmed")
    priority = Column(String(20), nullable=False, default="normal")
    category_id = Column(Integer, ForeignKey("event_categories.id", ondelete="SET NULL"), nullable=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    is_published = Column(Boolean, nullable=False, default=True)

    # Recurrence: JSON pattern plus a JSON list of YYYY-MM-DD exception dates
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_rule = Column(Text, nullable=True)
    recurrence_end = Column(DateTime, nullable=True)
    recurrence_exceptions = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime, nullable=True, index=True)

    author = relationship("User")
    category = relationship("EventCategory")
    tags = relationship("Tag", secondary=event_tags)
    target_groups = relationship("Group", secondary=event_target_groups)

    # Events have no separate publish timestamp
    published_at = None
