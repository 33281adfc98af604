"""Discord bot for Rollcall.

Listens for component interactions on posted event cards and the ephemeral
choosers, and routes them to the signup handler. Slash commands and card
posting live elsewhere; this bot only reacts to clicks.

The bot is optional: if DISCORD_BOT_TOKEN is not set, nothing starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord import Intents
from discord.ext import commands

from rollcall.core.cooldown import CooldownTracker
from rollcall.core.identity import SqlIdentityService
from rollcall.core.roster import SqlCardLocator, SqlRosterService
from rollcall.discord.signup import (
    ButtonPress,
    MenuSelection,
    SignupInteractionHandler,
    parse_component,
)
from rollcall.discord.sync import RosterSynchronizer
from rollcall.models.card import CardContext

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from rollcall.config import Settings

logger = logging.getLogger(__name__)


class RollcallBot(commands.Bot):
    """The Rollcall Discord bot.

    Owns one ``SignupInteractionHandler`` (and with it the signup cooldown
    map) and one ``RosterSynchronizer`` for the life of the process.
    """

    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        *,
        cooldown: CooldownTracker | None = None,
    ) -> None:
        intents = Intents.default()
        super().__init__(
            command_prefix="!",
            intents=intents,
            description="Rollcall -- event signups from the channel.",
        )
        self.settings = settings
        self.engine = engine
        self.runner_task: asyncio.Task[None] | None = None

        roster = SqlRosterService(engine)
        identity = SqlIdentityService(engine)
        self.synchronizer = RosterSynchronizer(
            self,
            roster,
            identity,
            SqlCardLocator(engine),
            guild_id=settings.guild_id,
            context=CardContext(
                community_name=settings.community_name,
                client_url=settings.client_url or None,
            ),
            display_cap=settings.roster_display_cap,
        )
        if cooldown is None:
            cooldown = CooldownTracker.from_seconds(
                settings.signup_cooldown_seconds,
                settings.cooldown_cleanup_interval_seconds,
            )
        self.signups = SignupInteractionHandler(
            roster,
            identity,
            self.synchronizer,
            cooldown=cooldown,
            client_url=settings.client_url,
        )

    async def on_ready(self) -> None:
        user = self.user
        name = user.name if user else "unknown"
        logger.info("discord_bot_ready user=%s", name)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        """Route signup components; everything else is left to discord.py."""
        component = parse_component(interaction)
        if component is None:
            return
        if isinstance(component, ButtonPress):
            await self.signups.on_button(component)
        elif isinstance(component, MenuSelection):
            await self.signups.on_select_menu(component)


def is_discord_enabled(settings: Settings) -> bool:
    """Check whether Discord integration should be started.

    Returns True only when discord_enabled is True, a token is set, AND the
    environment is not development.
    """
    if settings.rollcall_env == "development":
        logger.info("discord_bot_skipped_in_development")
        return False
    return bool(settings.discord_enabled and settings.discord_bot_token)


async def start_discord_bot(settings: Settings, engine: AsyncEngine) -> RollcallBot:
    """Create and start the Discord bot in the current event loop.

    Returns the bot instance so the caller can stop it during shutdown.
    The bot runs as a background task; this function returns immediately
    after starting it.
    """
    bot = RollcallBot(settings=settings, engine=engine)

    async def _run_bot() -> None:
        try:
            await bot.start(settings.discord_bot_token)
        except asyncio.CancelledError:
            logger.info("discord_bot_cancelled")
        except Exception:  # Last-resort handler: bot.start can raise connection and auth errors
            logger.exception("discord_bot_error")
        finally:
            if not bot.is_closed():
                await bot.close()

    bot.runner_task = asyncio.create_task(_run_bot(), name="discord-bot")
    logger.info("discord_bot_started")
    return bot
