from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.associations import group_admins, group_app_groups, user_groups


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String, nullable=True)
    color = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    members = relationship("User", secondary=user_groups, back_populates="groups")
    admins = relationship("User", secondary=group_admins, back_populates="administered_groups")
    app_groups = relationship("AppGroup", secondary=group_app_groups, back_populates="linked_groups")
