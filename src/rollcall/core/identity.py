"""SQLAlchemy-backed identity, character and event registry lookups."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from rollcall.core.errors import CharacterNotFound
from rollcall.db.engine import get_session
from rollcall.db.models import CharacterRow, EventRow, GameRow, UserRow
from rollcall.db.repository import Repository
from rollcall.models.signup import (
    SIGNUP_ROLES,
    Character,
    EventInfo,
    GameInfo,
    LinkedUser,
    SlotConfig,
)

logger = logging.getLogger(__name__)


def user_from_row(row: UserRow) -> LinkedUser:
    return LinkedUser(
        id=row.id,
        discord_id=row.discord_id or "",
        username=row.username,
        avatar=row.avatar,
    )


def character_from_row(row: CharacterRow) -> Character:
    return Character(
        id=row.id,
        user_id=row.user_id,
        game_id=row.game_id,
        name=row.name,
        class_name=row.class_name,
        spec=row.spec,
        role=row.role if row.role in SIGNUP_ROLES else None,
        level=row.level,
        is_main=row.is_main,
    )


def game_from_row(row: GameRow) -> GameInfo:
    return GameInfo(
        id=row.id,
        name=row.name,
        cover_url=row.cover_url,
        has_roles=row.has_roles,
        has_specs=row.has_specs,
    )


def slot_config_from_json(raw: object) -> SlotConfig | None:
    """Read the loosely-typed slot config column.

    Anything that is not a mapping, or fails validation, is treated as "no
    role requirement" rather than an error.
    """
    if not isinstance(raw, dict):
        return None
    try:
        return SlotConfig.model_validate(raw)
    except ValueError:
        logger.warning("slot_config_invalid raw=%r", raw)
        return None


def event_from_row(row: EventRow) -> EventInfo:
    return EventInfo(
        id=row.id,
        title=row.title,
        description=row.description,
        start_time=row.start_time,
        end_time=row.end_time,
        max_attendees=row.max_attendees,
        game_id=row.game_id,
        slot_config=slot_config_from_json(row.slot_config),
        cancelled_at=row.cancelled_at,
    )


class SqlIdentityService:
    """IdentityService over the Rollcall database."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    async def find_linked_identity(self, discord_user_id: str) -> LinkedUser | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_user_by_discord_id(discord_user_id)
            return user_from_row(row) if row else None

    async def list_characters(self, user_id: int, game_id: str) -> list[Character]:
        async with get_session(self.engine) as session:
            rows = await Repository(session).list_characters(user_id, game_id)
            return [character_from_row(r) for r in rows]

    async def get_character(self, user_id: int, character_id: str) -> Character:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_character(character_id)
            if row is None or row.user_id != user_id:
                raise CharacterNotFound(
                    f"Character {character_id} not found or does not belong to user {user_id}"
                )
            return character_from_row(row)

    async def get_event(self, event_id: int) -> EventInfo | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_event(event_id)
            return event_from_row(row) if row else None

    async def get_game(self, game_id: str) -> GameInfo | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_game(game_id)
            return game_from_row(row) if row else None
