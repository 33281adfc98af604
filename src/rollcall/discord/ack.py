"""Acknowledgment guard for component interactions.

Discord allows exactly one initial response per interaction, within three
seconds. Duplicate gateway deliveries and slow event loops both surface as
API errors that are safe to ignore:

- 40060: interaction has already been acknowledged
- 10062: unknown interaction (token expired)

discord.py also raises ``InteractionResponded`` client-side before sending a
second initial response. Everything else is a real failure and propagates.
"""

from __future__ import annotations

import logging
from typing import Any

import discord

logger = logging.getLogger(__name__)

INTERACTION_ALREADY_ACKNOWLEDGED = 40060
UNKNOWN_INTERACTION = 10062

ACK_RACE_CODES: frozenset[int] = frozenset({INTERACTION_ALREADY_ACKNOWLEDGED, UNKNOWN_INTERACTION})


def is_acknowledgment_race(exc: BaseException) -> bool:
    """True for errors meaning another delivery already owns the interaction."""
    if isinstance(exc, discord.InteractionResponded):
        return True
    if isinstance(exc, discord.HTTPException):
        return exc.code in ACK_RACE_CODES
    return False


async def defer_button(interaction: discord.Interaction) -> bool:
    """Acknowledge a card button with an ephemeral "thinking" reply.

    Returns False if the interaction was already acknowledged or expired; the
    caller should abandon it without replying.
    """
    try:
        await interaction.response.defer(ephemeral=True, thinking=True)
    except (discord.HTTPException, discord.InteractionResponded) as exc:
        if not is_acknowledgment_race(exc):
            raise
        logger.warning(
            "interaction_defer_skipped interaction=%s kind=button err=%s", interaction.id, exc
        )
        return False
    return True


async def defer_menu(interaction: discord.Interaction) -> bool:
    """Acknowledge a select menu as a deferred update of the message holding it."""
    try:
        await interaction.response.defer()
    except (discord.HTTPException, discord.InteractionResponded) as exc:
        if not is_acknowledgment_race(exc):
            raise
        logger.warning(
            "interaction_defer_skipped interaction=%s kind=menu err=%s", interaction.id, exc
        )
        return False
    return True


async def safe_reply(interaction: discord.Interaction, **payload: Any) -> None:
    """Edit the deferred response, swallowing acknowledgment races.

    ``payload`` is passed to ``edit_original_response`` (content, embed, view).
    """
    try:
        await interaction.edit_original_response(**payload)
    except (discord.HTTPException, discord.InteractionResponded) as exc:
        if not is_acknowledgment_race(exc):
            raise
        logger.warning("interaction_reply_skipped interaction=%s err=%s", interaction.id, exc)
