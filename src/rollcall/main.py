"""Process entry point: configure logging, prepare the database, run the bot."""

from __future__ import annotations

import asyncio
import logging

from rollcall.config import Settings
from rollcall.db.engine import create_engine, create_tables
from rollcall.discord.bot import is_discord_enabled, start_discord_bot

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.rollcall_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run(settings: Settings) -> None:
    """Run the bot until it stops, then release the database."""
    engine = create_engine(settings.database_url)
    try:
        await create_tables(engine)
        bot = await start_discord_bot(settings, engine)
        if bot.runner_task is not None:
            await bot.runner_task
    finally:
        await engine.dispose()
        logger.info("rollcall_stopped")


def main() -> int:
    settings = Settings()
    configure_logging(settings)

    if not is_discord_enabled(settings):
        logger.warning(
            "discord_bot_disabled env=%s enabled=%s token_set=%s",
            settings.rollcall_env,
            settings.discord_enabled,
            bool(settings.discord_bot_token),
        )
        return 1

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("rollcall_interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
