"""Signup domain models.

Events, games, linked users, characters and signups as the interaction core
sees them. The storage layer converts its rows into these.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

SignupStatus = Literal["signed_up", "tentative", "declined", "roached_out"]

ConfirmationStatus = Literal["pending", "confirmed", "changed"]

SignupRole = Literal["tank", "healer", "dps"]

SIGNUP_ROLES: tuple[SignupRole, ...] = ("tank", "healer", "dps")

# Statuses that do not count toward the roster headcount.
INACTIVE_STATUSES: frozenset[str] = frozenset({"declined", "roached_out"})


class SlotConfig(BaseModel):
    """Role requirements for an event.

    Only ``type == "mmo"`` divides capacity into roles. Anything else, or a
    missing block, means a flat headcount.
    """

    type: str | None = None
    tank: int = Field(default=0, ge=0)
    healer: int = Field(default=0, ge=0)
    dps: int = Field(default=0, ge=0)
    flex: int = Field(default=0, ge=0)
    player: int = Field(default=0, ge=0)
    bench: int = Field(default=0, ge=0)

    @property
    def is_role_typed(self) -> bool:
        return self.type == "mmo"

    def role_capacity(self, role: str) -> int:
        return int(getattr(self, role, 0) or 0)

    @property
    def total_role_capacity(self) -> int:
        return self.tank + self.healer + self.dps + self.flex


class GameInfo(BaseModel):
    """A game from the registry. ``has_roles`` means characters carry roles."""

    id: str
    name: str
    cover_url: str | None = None
    has_roles: bool = False
    has_specs: bool = False


class EventInfo(BaseModel):
    """A scheduled event that members sign up for."""

    id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    max_attendees: int | None = None
    game_id: str | None = None
    slot_config: SlotConfig | None = None
    cancelled_at: datetime | None = None

    @property
    def is_role_typed(self) -> bool:
        return self.slot_config is not None and self.slot_config.is_role_typed


class LinkedUser(BaseModel):
    """A member whose Discord account is linked to a web account."""

    id: int
    discord_id: str
    username: str
    avatar: str | None = None


class Character(BaseModel):
    """A player character belonging to a linked user."""

    id: str
    user_id: int
    game_id: str
    name: str
    class_name: str | None = None
    spec: str | None = None
    role: SignupRole | None = None
    level: int | None = None
    is_main: bool = False


class Signup(BaseModel):
    """One member's signup for one event.

    Linked signups carry ``user_id``; anonymous (Discord-only) signups carry
    ``discord_user_id`` and the Discord username instead.
    """

    id: int
    event_id: int
    user_id: int | None = None
    discord_user_id: str | None = None
    # Discord account of the member, linked or anonymous; used for mentions.
    discord_id: str | None = None
    username: str = "Unknown"
    avatar: str | None = None
    status: SignupStatus = "signed_up"
    confirmation_status: ConfirmationStatus = "pending"
    character_id: str | None = None
    character: Character | None = None
    role: SignupRole | None = None
    note: str | None = None
    signed_up_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES

    def ref(self) -> SignupRef:
        """How to address this signup in status updates and cancellations."""
        if self.discord_user_id:
            return SignupRef(discord_user_id=self.discord_user_id)
        return SignupRef(user_id=self.user_id)


class SignupRef(BaseModel):
    """Identifies whose signup to change: a linked user or a Discord user."""

    user_id: int | None = None
    discord_user_id: str | None = None


class AnonymousIdentity(BaseModel):
    """A Discord member signing up without a linked account."""

    discord_user_id: str
    username: str
    avatar: str | None = None
    role: SignupRole | None = None
    status: SignupStatus = "signed_up"


class RosterSnapshot(BaseModel):
    """All signups for an event, oldest first."""

    event_id: int
    signups: list[Signup] = Field(default_factory=list)
    count: int = 0
