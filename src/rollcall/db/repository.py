"""Repository pattern for database access.

Wraps a SQLAlchemy async session. Callers own the transaction via
``get_session``; the repository only flushes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rollcall.db.models import (
    CharacterRow,
    EventMessageRow,
    EventRow,
    GameRow,
    RosterAssignmentRow,
    SignupRow,
    UserRow,
)


class Repository:
    """Async repository for all database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Users / characters / games ---

    async def create_user(
        self, username: str, discord_id: str | None = None, avatar: str | None = None
    ) -> UserRow:
        row = UserRow(username=username, discord_id=discord_id, avatar=avatar)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_user_by_discord_id(self, discord_id: str) -> UserRow | None:
        stmt = select(UserRow).where(UserRow.discord_id == discord_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_game(
        self,
        name: str,
        *,
        has_roles: bool = False,
        has_specs: bool = False,
        cover_url: str | None = None,
    ) -> GameRow:
        row = GameRow(name=name, has_roles=has_roles, has_specs=has_specs, cover_url=cover_url)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_game(self, game_id: str) -> GameRow | None:
        return await self.session.get(GameRow, game_id)

    async def create_character(
        self,
        user_id: int,
        game_id: str,
        name: str,
        *,
        class_name: str | None = None,
        spec: str | None = None,
        role: str | None = None,
        level: int | None = None,
        is_main: bool = False,
        display_order: int = 0,
    ) -> CharacterRow:
        row = CharacterRow(
            user_id=user_id,
            game_id=game_id,
            name=name,
            class_name=class_name,
            spec=spec,
            role=role,
            level=level,
            is_main=is_main,
            display_order=display_order,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_characters(self, user_id: int, game_id: str) -> list[CharacterRow]:
        """Characters for one game, main first, then by display order."""
        stmt = (
            select(CharacterRow)
            .where(CharacterRow.user_id == user_id, CharacterRow.game_id == game_id)
            .order_by(CharacterRow.is_main.desc(), CharacterRow.display_order, CharacterRow.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_character(self, character_id: str) -> CharacterRow | None:
        return await self.session.get(CharacterRow, character_id)

    # --- Events ---

    async def create_event(
        self,
        title: str,
        start_time: datetime,
        end_time: datetime,
        *,
        description: str | None = None,
        max_attendees: int | None = None,
        game_id: str | None = None,
        slot_config: dict | None = None,
    ) -> EventRow:
        row = EventRow(
            title=title,
            start_time=start_time,
            end_time=end_time,
            description=description,
            max_attendees=max_attendees,
            game_id=game_id,
            slot_config=slot_config,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_event(self, event_id: int) -> EventRow | None:
        return await self.session.get(EventRow, event_id)

    # --- Signups ---

    def _signup_query(self):  # noqa: ANN202
        return select(SignupRow).options(
            selectinload(SignupRow.user),
            selectinload(SignupRow.character),
            selectinload(SignupRow.assignment),
        )

    async def get_signup(self, event_id: int, signup_id: int) -> SignupRow | None:
        stmt = self._signup_query().where(
            SignupRow.id == signup_id, SignupRow.event_id == event_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_signup_by_discord_id(
        self, event_id: int, discord_user_id: str
    ) -> SignupRow | None:
        """Match anonymous signups by Discord id and linked ones via the user."""
        linked_user_ids = select(UserRow.id).where(UserRow.discord_id == discord_user_id)
        stmt = (
            self._signup_query()
            .where(
                SignupRow.event_id == event_id,
                or_(
                    SignupRow.discord_user_id == discord_user_id,
                    SignupRow.user_id.in_(linked_user_ids),
                ),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_signup_by_user_id(self, event_id: int, user_id: int) -> SignupRow | None:
        stmt = (
            self._signup_query()
            .where(SignupRow.event_id == event_id, SignupRow.user_id == user_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_signup(self, row: SignupRow) -> SignupRow:
        self.session.add(row)
        await self.session.flush()
        return row

    async def load_signup(self, row: SignupRow) -> SignupRow:
        """Load a signup's relationships after inserting or changing it."""
        await self.session.refresh(row, attribute_names=["user", "character", "assignment"])
        return row

    async def list_signups(self, event_id: int) -> list[SignupRow]:
        stmt = (
            self._signup_query()
            .where(SignupRow.event_id == event_id)
            .order_by(SignupRow.signed_up_at, SignupRow.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_signup(self, row: SignupRow) -> None:
        await self.session.delete(row)
        await self.session.flush()

    # --- Roster assignments ---

    async def assign_role(self, event_id: int, signup_id: int, role: str) -> RosterAssignmentRow:
        """Assign a role slot, placing the signup after existing holders of that role."""
        count_stmt = select(func.count()).where(
            RosterAssignmentRow.event_id == event_id, RosterAssignmentRow.role == role
        )
        taken = (await self.session.execute(count_stmt)).scalar_one()
        row = RosterAssignmentRow(
            event_id=event_id, signup_id=signup_id, role=role, position=taken + 1
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def count_roles(self, event_id: int) -> dict[str, int]:
        stmt = (
            select(RosterAssignmentRow.role, func.count())
            .where(RosterAssignmentRow.event_id == event_id)
            .group_by(RosterAssignmentRow.role)
        )
        result = await self.session.execute(stmt)
        return {role: count for role, count in result.all() if role}

    # --- Posted cards ---

    async def get_event_message(self, event_id: int, guild_id: int) -> EventMessageRow | None:
        stmt = (
            select(EventMessageRow)
            .where(EventMessageRow.event_id == event_id, EventMessageRow.guild_id == guild_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def save_event_message(
        self,
        event_id: int,
        guild_id: int,
        channel_id: int,
        message_id: int,
        embed_state: str = "posted",
    ) -> EventMessageRow:
        """Record (or move) the card for an event in a guild."""
        row = await self.get_event_message(event_id, guild_id)
        if row is None:
            row = EventMessageRow(event_id=event_id, guild_id=guild_id)
            self.session.add(row)
        row.channel_id = channel_id
        row.message_id = message_id
        row.embed_state = embed_state
        await self.session.flush()
        return row
