"""Models for the shared event card posted in a Discord channel.

``RosterView`` is derived data: built fresh from the roster on every redraw
and never stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from rollcall.models.signup import SlotConfig

EmbedState = Literal["posted", "filling", "full", "imminent", "live", "completed", "cancelled"]


class PostedCard(BaseModel):
    """Location of an announced event card."""

    event_id: int
    guild_id: int
    channel_id: int
    message_id: int
    embed_state: EmbedState = "posted"


class Participant(BaseModel):
    """One roster line on the card."""

    discord_id: str | None = None
    username: str | None = None
    role: str | None = None
    status: str | None = None
    class_name: str | None = None

    @property
    def label(self) -> str:
        if self.discord_id:
            return f"<@{self.discord_id}>"
        return self.username or "???"


class RosterView(BaseModel):
    """Everything the card renderer needs for one event."""

    event_id: int
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    signup_count: int = 0
    max_attendees: int | None = None
    slot_config: SlotConfig | None = None
    role_counts: dict[str, int] = Field(default_factory=dict)
    participants: list[Participant] = Field(default_factory=list)
    overflow: int = Field(default=0, ge=0)
    game_name: str | None = None
    game_cover_url: str | None = None


class CardContext(BaseModel):
    """Community-wide rendering context."""

    community_name: str = "Raid Ledger"
    client_url: str | None = None


def cap_participants(
    participants: list[Participant], cap: int
) -> tuple[list[Participant], int]:
    """Keep the first ``cap`` participants and count the rest.

    The overflow count is rendered as a single "+ N more" line.
    """
    if cap < 0:
        msg = "cap must be non-negative"
        raise ValueError(msg)
    return participants[:cap], max(len(participants) - cap, 0)
