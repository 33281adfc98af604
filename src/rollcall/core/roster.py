"""SQLAlchemy-backed roster service and posted-card lookup.

Signups are either linked (a web account) or anonymous (a Discord member who
never linked one). Both kinds are addressed by Discord id from the interaction
handlers. Creating a signup is idempotent: the existing one is returned.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from rollcall.core.errors import (
    CharacterNotFound,
    EventNotFound,
    SignupNotFound,
    SignupOwnershipError,
)
from rollcall.core.identity import character_from_row, slot_config_from_json
from rollcall.db.engine import get_session
from rollcall.db.models import EventRow, SignupRow
from rollcall.db.repository import Repository
from rollcall.models.card import PostedCard
from rollcall.models.signup import (
    SIGNUP_ROLES,
    AnonymousIdentity,
    RosterSnapshot,
    Signup,
    SignupRef,
    SignupRole,
    SignupStatus,
)

logger = logging.getLogger(__name__)

# Slot name used for flat (non role-typed) events.
GENERIC_SLOT = "player"


def signup_from_row(row: SignupRow) -> Signup:
    user = row.user
    if user is not None:
        username = user.username
        avatar = user.avatar
    else:
        username = row.discord_username or "Unknown"
        avatar = row.discord_avatar_hash
    assignment = row.assignment
    role = assignment.role if assignment is not None else None
    return Signup(
        id=row.id,
        event_id=row.event_id,
        user_id=row.user_id,
        discord_user_id=row.discord_user_id,
        discord_id=(user.discord_id if user is not None else None) or row.discord_user_id,
        username=username,
        avatar=avatar,
        status=row.status,
        confirmation_status=row.confirmation_status,
        character_id=row.character_id,
        character=character_from_row(row.character) if row.character else None,
        role=role if role in SIGNUP_ROLES else None,
        note=row.note,
        signed_up_at=row.signed_up_at,
    )


async def _generic_slot_for(repo: Repository, event: EventRow) -> str | None:
    """Auto-assign flat events to the player slot while there is room.

    Role-typed events never auto-slot; the member has to pick a role.
    """
    config = slot_config_from_json(event.slot_config)
    if config is not None and config.is_role_typed:
        return None
    capacity = (config.player if config is not None and config.player else None) or (
        event.max_attendees
    )
    if not capacity:
        return None
    taken = (await repo.count_roles(event.id)).get(GENERIC_SLOT, 0)
    return GENERIC_SLOT if taken < capacity else None


class SqlRosterService:
    """RosterService over the Rollcall database. One session per call."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def find_by_user(self, event_id: int, discord_user_id: str) -> Signup | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).find_signup_by_discord_id(event_id, discord_user_id)
            return signup_from_row(row) if row else None

    async def signup(
        self,
        event_id: int,
        user_id: int,
        *,
        slot_role: SignupRole | None = None,
        note: str | None = None,
    ) -> Signup:
        try:
            async with get_session(self.engine) as session:
                repo = Repository(session)
                event = await repo.get_event(event_id)
                if event is None:
                    raise EventNotFound(event_id)
                existing = await repo.find_signup_by_user_id(event_id, user_id)
                if existing is not None:
                    return signup_from_row(existing)

                row = await repo.add_signup(
                    SignupRow(event_id=event_id, user_id=user_id, note=note)
                )
                role = slot_role or await _generic_slot_for(repo, event)
                if role:
                    await repo.assign_role(event_id, row.id, role)
                signup = signup_from_row(await repo.load_signup(row))
        except IntegrityError:
            # A concurrent request inserted first; return its signup.
            async with get_session(self.engine) as session:
                existing = await Repository(session).find_signup_by_user_id(event_id, user_id)
                if existing is None:
                    raise
                return signup_from_row(existing)

        logger.info("signup_created event=%d user=%d role=%s", event_id, user_id, role)
        return signup

    async def signup_anonymous(self, event_id: int, identity: AnonymousIdentity) -> Signup:
        """Sign up a Discord member, taking the linked path if they have an account."""
        async with get_session(self.engine) as session:
            linked = await Repository(session).get_user_by_discord_id(identity.discord_user_id)
        if linked is not None:
            signup = await self.signup(event_id, linked.id, slot_role=identity.role)
            if identity.status != signup.status:
                signup = await self.update_status(
                    event_id, SignupRef(user_id=linked.id), identity.status
                )
            return signup

        try:
            async with get_session(self.engine) as session:
                repo = Repository(session)
                event = await repo.get_event(event_id)
                if event is None:
                    raise EventNotFound(event_id)
                existing = await repo.find_signup_by_discord_id(
                    event_id, identity.discord_user_id
                )
                if existing is not None:
                    return signup_from_row(existing)

                row = await repo.add_signup(
                    SignupRow(
                        event_id=event_id,
                        discord_user_id=identity.discord_user_id,
                        discord_username=identity.username,
                        discord_avatar_hash=identity.avatar,
                        status=identity.status,
                    )
                )
                role = identity.role or await _generic_slot_for(repo, event)
                if role:
                    await repo.assign_role(event_id, row.id, role)
                signup = signup_from_row(await repo.load_signup(row))
        except IntegrityError:
            async with get_session(self.engine) as session:
                existing = await Repository(session).find_signup_by_discord_id(
                    event_id, identity.discord_user_id
                )
                if existing is None:
                    raise
                return signup_from_row(existing)

        logger.info(
            "anonymous_signup_created event=%d discord_user=%s role=%s status=%s",
            event_id,
            identity.discord_user_id,
            role,
            identity.status,
        )
        return signup

    async def _find_by_ref(self, repo: Repository, event_id: int, who: SignupRef) -> SignupRow:
        if who.discord_user_id:
            row = await repo.find_signup_by_discord_id(event_id, who.discord_user_id)
        elif who.user_id is not None:
            row = await repo.find_signup_by_user_id(event_id, who.user_id)
        else:
            msg = "SignupRef needs a user_id or a discord_user_id"
            raise ValueError(msg)
        if row is None:
            raise SignupNotFound(f"Signup not found for {who!r} on event {event_id}")
        return row

    async def update_status(self, event_id: int, who: SignupRef, status: SignupStatus) -> Signup:
        async with get_session(self.engine) as session:
            repo = Repository(session)
            row = await self._find_by_ref(repo, event_id, who)
            row.status = status
            await session.flush()
            signup = signup_from_row(row)
        logger.info("signup_status_updated event=%d signup=%d status=%s", event_id, row.id, status)
        return signup

    async def cancel(self, event_id: int, who: SignupRef) -> None:
        async with get_session(self.engine) as session:
            repo = Repository(session)
            row = await self._find_by_ref(repo, event_id, who)
            signup_id = row.id
            await repo.delete_signup(row)
        logger.info("signup_cancelled event=%d signup=%d", event_id, signup_id)

    async def confirm(
        self, event_id: int, signup_id: int, user_id: int, character_id: str
    ) -> Signup:
        """Attach a character. First confirmation is ``confirmed``, later ones ``changed``."""
        async with get_session(self.engine) as session:
            repo = Repository(session)
            row = await repo.get_signup(event_id, signup_id)
            if row is None:
                raise SignupNotFound(f"Signup {signup_id} not found for event {event_id}")
            if row.user_id != user_id:
                raise SignupOwnershipError("You can only confirm your own signup")
            character = await repo.get_character(character_id)
            if character is None or character.user_id != user_id:
                raise CharacterNotFound("Character not found or does not belong to you")

            row.character_id = character_id
            row.confirmation_status = (
                "confirmed" if row.confirmation_status == "pending" else "changed"
            )
            await session.flush()
            signup = signup_from_row(await repo.load_signup(row))
        logger.info(
            "signup_confirmed event=%d signup=%d character=%s", event_id, signup_id, character_id
        )
        return signup

    async def get_roster(self, event_id: int) -> RosterSnapshot:
        async with get_session(self.engine) as session:
            repo = Repository(session)
            if await repo.get_event(event_id) is None:
                raise EventNotFound(event_id)
            signups = [signup_from_row(r) for r in await repo.list_signups(event_id)]
        return RosterSnapshot(event_id=event_id, signups=signups, count=len(signups))

    async def get_role_counts(self, event_id: int) -> dict[str, int]:
        async with get_session(self.engine) as session:
            return await Repository(session).count_roles(event_id)


class SqlCardLocator:
    """CardLocator over the discord_event_messages table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def find_card(self, event_id: int, guild_id: int) -> PostedCard | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_event_message(event_id, guild_id)
            if row is None:
                return None
            return PostedCard(
                event_id=row.event_id,
                guild_id=row.guild_id,
                channel_id=row.channel_id,
                message_id=row.message_id,
                embed_state=row.embed_state,
            )
