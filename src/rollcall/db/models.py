"""SQLAlchemy ORM models for the Rollcall database.

Tables: users, games, characters, events, event_signups, roster_assignments,
discord_event_messages.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class UserRow(Base):
    """A web account, optionally linked to a Discord user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    discord_id: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    characters: Mapped[list[CharacterRow]] = relationship(back_populates="user")


class GameRow(Base):
    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cover_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_roles: Mapped[bool] = mapped_column(Boolean, default=False)
    has_specs: Mapped[bool] = mapped_column(Boolean, default=False)


class CharacterRow(Base):
    __tablename__ = "characters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    game_id: Mapped[str] = mapped_column(ForeignKey("games.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    class_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    spec: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_main: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    user: Mapped[UserRow] = relationship(back_populates="characters")

    __table_args__ = (Index("ix_characters_user_game", "user_id", "game_id"),)


class EventRow(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    max_attendees: Mapped[int | None] = mapped_column(Integer, nullable=True)
    game_id: Mapped[str | None] = mapped_column(ForeignKey("games.id"), nullable=True)
    # Loosely-typed role requirements, e.g. {"type": "mmo", "tank": 2, ...}
    slot_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    signups: Mapped[list[SignupRow]] = relationship(back_populates="event")


class SignupRow(Base):
    """A signup is either linked (user_id) or anonymous (discord_user_id)."""

    __tablename__ = "event_signups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    discord_user_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    discord_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    discord_avatar_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    character_id: Mapped[str | None] = mapped_column(
        ForeignKey("characters.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default="signed_up")
    confirmation_status: Mapped[str] = mapped_column(String(20), default="pending")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_up_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    event: Mapped[EventRow] = relationship(back_populates="signups")
    user: Mapped[UserRow | None] = relationship()
    character: Mapped[CharacterRow | None] = relationship()
    assignment: Mapped[RosterAssignmentRow | None] = relationship(
        back_populates="signup", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_user"),
        UniqueConstraint("event_id", "discord_user_id", name="uq_event_discord_user"),
        Index("ix_event_signups_event", "event_id"),
    )


class RosterAssignmentRow(Base):
    """The role slot a signup occupies on a role-typed event."""

    __tablename__ = "roster_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    signup_id: Mapped[int] = mapped_column(
        ForeignKey("event_signups.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=1)
    is_override: Mapped[bool] = mapped_column(Boolean, default=False)

    signup: Mapped[SignupRow] = relationship(back_populates="assignment")


class EventMessageRow(Base):
    """Where an event card was posted, one per event per guild."""

    __tablename__ = "discord_event_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    embed_state: Mapped[str] = mapped_column(String(20), default="posted")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    __table_args__ = (UniqueConstraint("event_id", "guild_id", name="uq_event_guild_message"),)
