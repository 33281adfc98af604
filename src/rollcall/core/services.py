"""Collaborator interfaces for the signup interaction core.

The Discord handlers depend only on these protocols. ``rollcall.core.roster``
and ``rollcall.core.identity`` provide SQLAlchemy-backed implementations;
tests substitute mocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from rollcall.models.card import PostedCard
    from rollcall.models.signup import (
        AnonymousIdentity,
        Character,
        EventInfo,
        GameInfo,
        LinkedUser,
        RosterSnapshot,
        Signup,
        SignupRef,
        SignupRole,
        SignupStatus,
    )


class RosterService(Protocol):
    """Signup storage for events."""

    async def find_by_user(self, event_id: int, discord_user_id: str) -> Signup | None:
        """Find a signup by Discord id, whether linked or anonymous."""
        ...

    async def signup(
        self,
        event_id: int,
        user_id: int,
        *,
        slot_role: SignupRole | None = None,
        note: str | None = None,
    ) -> Signup:
        """Sign up a linked user. Returns the existing signup if there is one."""
        ...

    async def signup_anonymous(self, event_id: int, identity: AnonymousIdentity) -> Signup:
        """Sign up a Discord member without a linked account."""
        ...

    async def update_status(
        self, event_id: int, who: SignupRef, status: SignupStatus
    ) -> Signup: ...

    async def cancel(self, event_id: int, who: SignupRef) -> None: ...

    async def confirm(
        self, event_id: int, signup_id: int, user_id: int, character_id: str
    ) -> Signup:
        """Attach a character to a linked user's signup."""
        ...

    async def get_roster(self, event_id: int) -> RosterSnapshot: ...

    async def get_role_counts(self, event_id: int) -> dict[str, int]:
        """Number of roster assignments per role."""
        ...


class IdentityService(Protocol):
    """Linked accounts, characters, and the event/game registry."""

    async def find_linked_identity(self, discord_user_id: str) -> LinkedUser | None: ...

    async def list_characters(self, user_id: int, game_id: str) -> list[Character]: ...

    async def get_character(self, user_id: int, character_id: str) -> Character:
        """Raises CharacterNotFound if missing or owned by someone else."""
        ...

    async def get_event(self, event_id: int) -> EventInfo | None: ...

    async def get_game(self, game_id: str) -> GameInfo | None: ...


class CardLocator(Protocol):
    """Where an event's card was posted in a guild."""

    async def find_card(self, event_id: int, guild_id: int) -> PostedCard | None: ...
