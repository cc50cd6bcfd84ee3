from __future__ import annotations

import asyncio
from typing import Optional

import discord
from telegram import BotCommand
from telegram.ext import Application, CommandHandler
from telegram.request import HTTPXRequest

from .api import SleeperClient
from .commands import (
    SERVICES_KEY,
    BotServices,
    alerts_cmd,
    help_cmd,
    lang_cmd,
    leagues_cmd,
    link_sleeper_cmd,
    refresh_cmd,
    remove_league_cmd,
    start_cmd,
    status_cmd,
    timezone_cmd,
    today_cmd,
)
from .config import config, logger
from .db import dispose_db, init_db
from .digest import DigestService
from .jobs import JobManager
from .messenger import DiscordAdapter, Messenger, TelegramAdapter
from .storage import Store


BOT_COMMANDS = [
    BotCommand("start", "Start working with the bot"),
    BotCommand("help", "Show help and available commands"),
    BotCommand("link_sleeper", "Link your Sleeper profile"),
    BotCommand("leagues", "Show my leagues and alert settings"),
    BotCommand("today", "Current week digest"),
    BotCommand("timezone", "Show or change timezone"),
    BotCommand("lang", "Show or change language"),
    BotCommand("alerts", "Toggle alerts for a league"),
    BotCommand("remove_league", "Stop tracking a league"),
]


async def startup_health_check(client: SleeperClient) -> bool:
    """Log whether the Sleeper API is reachable; the bot starts either way."""
    logger.info("🏥 Running startup health check...")
    try:
        state = await client.get_state()
        logger.info(f"✅ Sleeper API reachable: season {state.season}, week {state.week}")
        return True
    except Exception as e:
        logger.error(f"❌ Sleeper API health check failed: {e}")
        return False


def build_discord_client() -> Optional[discord.Client]:
    if not config.DISCORD_BOT_TOKEN:
        return None
    intents = discord.Intents.default()
    return discord.Client(intents=intents)


def main():
    config.validate_config()

    request = HTTPXRequest(
        connection_pool_size=8,
        connect_timeout=30.0,
        read_timeout=30.0,
        write_timeout=30.0,
        pool_timeout=30.0,
    )
    app = Application.builder().token(config.BOT_TOKEN).request(request).build()

    discord_client = build_discord_client()
    discord_task: Optional[asyncio.Task] = None

    store = Store()
    client = SleeperClient()
    messenger = Messenger(
        store,
        telegram=TelegramAdapter(app.bot),
        discord=DiscordAdapter(discord_client) if discord_client else None,
    )
    digest = DigestService(client, store)
    jobs = JobManager.build(client, store, messenger, digest)
    app.bot_data[SERVICES_KEY] = BotServices(
        client=client,
        store=store,
        messenger=messenger,
        digest=digest,
        jobs=jobs,
    )

    async def post_init(application: Application) -> None:
        nonlocal discord_task
        await init_db()
        await startup_health_check(client)

        try:
            logger.info("🔧 Setting up bot commands...")
            await application.bot.set_my_commands(BOT_COMMANDS)
            logger.info("✅ Bot commands configured successfully")
        except Exception as e:
            logger.error(f"❌ Failed to set bot commands: {e}")
            logger.warning("⚠️ Bot will continue but commands may not be visible in Telegram")

        if discord_client is not None:
            discord_task = asyncio.create_task(discord_client.start(config.DISCORD_BOT_TOKEN), name="discord")
            logger.info("✅ Discord delivery enabled")

        jobs.start()

    async def post_shutdown(application: Application) -> None:
        await jobs.stop()
        if discord_client is not None:
            await discord_client.close()
        if discord_task is not None:
            try:
                await discord_task
            except Exception as e:
                logger.warning(f"Discord client exited with error: {e}")
        await client.close()
        await dispose_db()

    app.post_init = post_init
    app.post_shutdown = post_shutdown

    app.add_handler(CommandHandler("start", start_cmd))
    app.add_handler(CommandHandler("help", help_cmd))
    app.add_handler(CommandHandler("link_sleeper", link_sleeper_cmd))
    app.add_handler(CommandHandler("leagues", leagues_cmd))
    app.add_handler(CommandHandler("today", today_cmd))
    app.add_handler(CommandHandler("timezone", timezone_cmd))
    app.add_handler(CommandHandler("lang", lang_cmd))
    app.add_handler(CommandHandler("alerts", alerts_cmd))
    app.add_handler(CommandHandler("remove_league", remove_league_cmd))
    app.add_handler(CommandHandler("refresh", refresh_cmd))
    app.add_handler(CommandHandler("status", status_cmd))

    app.run_polling(drop_pending_updates=True)
