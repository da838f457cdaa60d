from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from app.core.db import Base


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    level = Column(String(20), nullable=False, default="info")
    is_active = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())


class AppSetting(Base):
    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)


class HeroMessage(Base):
    __tablename__ = "hero_messages"

    id = Column(Integer, primary_key=True)
    text = Column(String(500), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Media(Base):
    __tablename__ = "media"

    id = Column(Integer, primary_key=True)
    filename = Column(String(255), nullable=False)
    url = Column(String(500), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())


class EmailOAuthConfig(Base):
    __tablename__ = "email_oauth_configs"

    id = Column(Integer, primary_key=True)
    provider = Column(String(50), nullable=False, default="microsoft")
    client_id = Column(String(255), nullable=False)
    client_secret = Column(Text, nullable=False)  # encrypted
    tenant_id = Column(String(255), nullable=True)
    token_url = Column(String(500), nullable=True)
    scope = Column(String(500), nullable=True)
    sender_email = Column(String(255), nullable=True)
    grant_type = Column(String(50), nullable=False, default="client_credentials")
    access_token = Column(Text, nullable=True)  # encrypted
    refresh_token = Column(Text, nullable=True)  # encrypted
    token_expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
