"""
SQLAlchemy ORM models for database tables
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """SQLAlchemy ORM model for users table"""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), nullable=False)  # always stored lower-cased
    password_hash = Column(String(255), nullable=False)
    tier = Column(String(20), default='free', nullable=False)
    tier_expires_at = Column(DateTime(timezone=True), nullable=True)
    role = Column(String(20), default='user', nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    reset_token_hash = Column(String(64), nullable=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index('idx_users_email', 'email', unique=True),
        Index('idx_users_reset_token', 'reset_token_hash'),
        Index('idx_users_tier', 'tier'),
        Index('idx_users_created', 'created_at'),
    )

    def __repr__(self):
        return f"<User(email='{self.email}', tier='{self.tier}', role='{self.role}')>"


class PromptModel(Base):
    """SQLAlchemy ORM model for prompts table"""

    __tablename__ = "prompts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=True)
    prompt = Column(Text, nullable=True)
    model = Column(String(100), default='llama-3.1-8b-instruct', nullable=False)
    tier = Column(String(20), default='free', nullable=False)  # owner's tier when submitted
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index('idx_prompts_user_created', 'user_id', 'created_at'),
        Index('idx_prompts_created', 'created_at'),
    )

    def __repr__(self):
        return f"<Prompt(user_id='{self.user_id}', model='{self.model}', tier='{self.tier}')>"


class PaymentEventModel(Base):
    """SQLAlchemy ORM model for payment_events table; one row per order that granted a tier"""

    __tablename__ = "payment_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(String(100), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    plan_id = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    processed_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_payment_events_order', 'order_id', unique=True),
    )

    def __repr__(self):
        return f"<PaymentEvent(order_id='{self.order_id}', plan_id='{self.plan_id}', status='{self.status}')>"
