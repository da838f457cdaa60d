from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.associations import group_app_groups


class AppGroup(Base):
    __tablename__ = "app_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    icon = Column(String(100), nullable=True)
    color = Column(String(20), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    # Private app groups belong to exactly one group, public ones to none
    is_private = Column(Boolean, nullable=False, default=False)
    owner_group_id = Column(Integer, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    owner_group = relationship("Group")
    linked_groups = relationship("Group", secondary=group_app_groups, back_populates="app_groups")
    applications = relationship(
        "Application", back_populates="app_group", cascade="all, delete-orphan", order_by="Application.order"
    )


class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    app_group_id = Column(Integer, ForeignKey("app_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String, nullable=True)
    url = Column(String(500), nullable=False)
    icon = Column(String(100), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    app_group = relationship("AppGroup", back_populates="applications")


class ApplicationClick(Base):
    __tablename__ = "application_clicks"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    application_id = Column(Integer, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    clicked_at = Column(DateTime, server_default=func.now())
