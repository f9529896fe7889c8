"""
Database models for Copydesk

- Account: subscriber identity, bearer token and Stripe linkage
- UserState: per-account audience, profile, preferences and SIN BIN
- VoiceProfile: learned style brief for the account's own writing
- ChatTurn: append-only conversation log
- ProcessedEvent: Stripe event ids already applied
"""

from datetime import datetime
from typing import Optional, List
from enum import Enum
import uuid

from sqlalchemy import (
    String, Text, DateTime, Integer, Boolean, ForeignKey, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.ext.declarative import declarative_base

Base = declarative_base()

DEFAULT_SIN_BIN = ["fundamentals", "here’s the thing"]


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Account(Base):
    """Subscriber account, provisioned by the Stripe webhook"""
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    subscribed: Mapped[bool] = mapped_column(Boolean, default=False)
    token: Mapped[str] = mapped_column(String(128))

    # Billing linkage (written by payment events only)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255))
    billing_status: Mapped[Optional[str]] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    state: Mapped[Optional["UserState"]] = relationship(
        "UserState", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    voice: Mapped[Optional["VoiceProfile"]] = relationship(
        "VoiceProfile", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )
    turns: Mapped[List["ChatTurn"]] = relationship(
        "ChatTurn", back_populates="account", cascade="all, delete-orphan"
    )


class UserState(Base):
    """
    Mutable per-account state.

    JSON columns are always reassigned (never mutated in place) so the
    ORM sees the change.
    """
    __tablename__ = "user_states"

    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), primary_key=True)
    avatar: Mapped[dict] = mapped_column(JSON, default=dict)  # Audience description
    my_profile: Mapped[str] = mapped_column(Text, default="")  # Self-description
    preferences: Mapped[dict] = mapped_column(JSON, default=dict)  # Includes "pending" preflight marker
    banned_words: Mapped[Optional[list]] = mapped_column(JSON, default=lambda: list(DEFAULT_SIN_BIN))
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account: Mapped["Account"] = relationship("Account", back_populates="state")


class VoiceProfile(Base):
    """Learned voice: style brief (append-with-cap), tone notes (replace)"""
    __tablename__ = "voice_profiles"

    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), primary_key=True)
    style_brief: Mapped[str] = mapped_column(Text, default="")
    tone_notes: Mapped[str] = mapped_column(Text, default="")
    sample_count: Mapped[int] = mapped_column(Integer, default=0)
    last_learned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    account: Mapped["Account"] = relationship("Account", back_populates="voice")


class ChatTurn(Base):
    """One logged message. Insert-only."""
    __tablename__ = "chat_turns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(36), ForeignKey("accounts.id"), index=True)
    role: Mapped[str] = mapped_column(String(20))  # TurnRole value
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    account: Mapped["Account"] = relationship("Account", back_populates="turns")


class ProcessedEvent(Base):
    """Stripe event ids that have been applied (at-least-once delivery guard)"""
    __tablename__ = "processed_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100))
    processed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
