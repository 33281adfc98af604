"""Roster synchronizer: redraws an event's posted card after a roster write."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from rollcall.config import DEFAULT_ROSTER_DISPLAY_CAP
from rollcall.discord.embeds import build_event_embed
from rollcall.models.card import CardContext, Participant, RosterView, cap_participants

if TYPE_CHECKING:
    from rollcall.core.services import CardLocator, IdentityService, RosterService
    from rollcall.models.signup import Signup

logger = logging.getLogger(__name__)


def participant_from_signup(signup: Signup) -> Participant:
    return Participant(
        discord_id=signup.discord_id,
        username=signup.username,
        role=signup.role,
        status=signup.status,
        class_name=signup.character.class_name if signup.character else None,
    )


class RosterSynchronizer:
    """Rebuilds the card for one event from the current roster.

    Call ``refresh_card`` once after every committed write. It never raises:
    the write has already happened, and a stale card is corrected by the next
    refresh.
    """

    def __init__(
        self,
        client: discord.Client,
        roster: RosterService,
        identity: IdentityService,
        cards: CardLocator,
        *,
        guild_id: int | None,
        context: CardContext,
        display_cap: int = DEFAULT_ROSTER_DISPLAY_CAP,
    ) -> None:
        self.client = client
        self.roster = roster
        self.identity = identity
        self.cards = cards
        self.guild_id = guild_id
        self.context = context
        self.display_cap = display_cap

    async def build_view(self, event_id: int) -> RosterView | None:
        """Current roster data for the card, or None if the event is gone."""
        event = await self.identity.get_event(event_id)
        if event is None:
            return None

        snapshot = await self.roster.get_roster(event_id)
        active = [s for s in snapshot.signups if s.is_active]
        role_counts = await self.roster.get_role_counts(event_id)
        shown, overflow = cap_participants(
            [participant_from_signup(s) for s in active], self.display_cap
        )

        game = await self.identity.get_game(event.game_id) if event.game_id else None
        return RosterView(
            event_id=event.id,
            title=event.title,
            description=event.description,
            start_time=event.start_time,
            end_time=event.end_time,
            signup_count=len(active),
            max_attendees=event.max_attendees,
            slot_config=event.slot_config,
            role_counts=role_counts,
            participants=shown,
            overflow=overflow,
            game_name=game.name if game else None,
            game_cover_url=game.cover_url if game else None,
        )

    async def _resolve_channel(self, channel_id: int) -> discord.abc.Messageable | None:
        channel = self.client.get_channel(channel_id)
        if channel is None:
            channel = await self.client.fetch_channel(channel_id)
        if isinstance(channel, discord.TextChannel | discord.Thread):
            return channel
        return None

    async def refresh_card(self, event_id: int) -> None:
        try:
            if self.guild_id is None:
                return
            card = await self.cards.find_card(event_id, self.guild_id)
            if card is None:
                # Never announced in this guild.
                return

            view = await self.build_view(event_id)
            if view is None:
                logger.warning("card_refresh_event_missing event=%d", event_id)
                return

            embed, buttons = build_event_embed(view, self.context, card.embed_state)
            channel = await self._resolve_channel(card.channel_id)
            if channel is None:
                logger.warning(
                    "card_refresh_channel_unavailable event=%d channel=%d",
                    event_id,
                    card.channel_id,
                )
                return

            message = channel.get_partial_message(card.message_id)  # type: ignore[attr-defined]
            await message.edit(embed=embed, view=buttons)
            logger.info(
                "card_refreshed event=%d signups=%d overflow=%d",
                event_id,
                view.signup_count,
                view.overflow,
            )
        except Exception:  # Last-resort handler: card redraws never fail the write
            logger.exception("card_refresh_failed event=%d", event_id)
