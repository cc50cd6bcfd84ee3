from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from .config import logger
from .i18n import DEFAULT_LANGUAGE, is_language_supported, t


class Platform(Enum):
    TELEGRAM = "telegram"
    DISCORD = "discord"


# Discord snowflakes are 17-19 digits; Telegram ids are far smaller
DISCORD_ID_MIN_DIGITS = 17

PLATFORM_DEFAULT_LANGUAGE = {
    Platform.TELEGRAM: "uk",
    Platform.DISCORD: "en",
}


def platform_from_id(chat_id: int | str) -> Platform:
    """Best-effort guess used only when the user record carries no platform tag."""
    digits = str(chat_id).lstrip("-")
    return Platform.DISCORD if len(digits) >= DISCORD_ID_MIN_DIGITS else Platform.TELEGRAM


def resolve_platform(chat_id: int, tag: Optional[str]) -> Platform:
    if tag:
        try:
            return Platform(tag)
        except ValueError:
            logger.warning(f"Unknown platform tag '{tag}' for user {chat_id}")
    return platform_from_id(chat_id)


def html_to_markdown(text: str) -> str:
    text = re.sub(r"</?b>", "**", text)
    text = re.sub(r"</?i>", "_", text)
    text = re.sub(r"</?code>", "`", text)
    return text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


class ChatAdapter(Protocol):
    async def send(self, chat_id: int, text: str, **options: Any) -> None: ...


class TelegramAdapter:
    def __init__(self, bot):
        self.bot = bot

    async def send(self, chat_id: int, text: str, **options: Any) -> None:
        options.setdefault("parse_mode", "HTML")
        await self.bot.send_message(chat_id, text, **options)


class DiscordAdapter:
    def __init__(self, client):
        self.client = client

    async def send(self, chat_id: int, text: str, **options: Any) -> None:
        options.pop("parse_mode", None)
        user = self.client.get_user(int(chat_id)) or await self.client.fetch_user(int(chat_id))
        await user.send(content=html_to_markdown(text), **options)


class UserLookup(Protocol):
    async def get_user(self, chat_id: int): ...


class Messenger:
    """Single send path that hides which chat platform a user is on.

    Delivery is best-effort: failures are logged and reported through the
    return value, never raised to the caller.
    """

    def __init__(
        self,
        store: UserLookup,
        telegram: ChatAdapter | None = None,
        discord: ChatAdapter | None = None,
    ):
        self.store = store
        self.adapters: Dict[Platform, ChatAdapter] = {}
        if telegram is not None:
            self.adapters[Platform.TELEGRAM] = telegram
        if discord is not None:
            self.adapters[Platform.DISCORD] = discord

    async def _lookup(self, chat_id: int):
        try:
            return await self.store.get_user(chat_id)
        except Exception as e:
            logger.warning(f"Could not load user {chat_id} for delivery: {e}")
            return None

    async def send_templated(
        self,
        chat_id: int,
        template_key: str,
        variables: Dict[str, Any] | None = None,
        **options: Any,
    ) -> bool:
        user = await self._lookup(chat_id)
        platform = resolve_platform(chat_id, getattr(user, "platform", None))
        lang = getattr(user, "lang", None)
        if not is_language_supported(lang):
            lang = PLATFORM_DEFAULT_LANGUAGE.get(platform, DEFAULT_LANGUAGE)
        text = t(template_key, variables or {}, lang)
        return await self._dispatch(chat_id, platform, text, options, label=template_key)

    async def send_raw(self, chat_id: int, text: str, platform: str | None = None, **options: Any) -> bool:
        if platform is None:
            user = await self._lookup(chat_id)
            platform = getattr(user, "platform", None)
        resolved = resolve_platform(chat_id, platform)
        return await self._dispatch(chat_id, resolved, text, options, label="raw")

    async def language_for(self, chat_id: int, platform: str | None = None) -> str:
        user = await self._lookup(chat_id)
        lang = getattr(user, "lang", None)
        if is_language_supported(lang):
            return lang
        resolved = resolve_platform(chat_id, platform or getattr(user, "platform", None))
        return PLATFORM_DEFAULT_LANGUAGE.get(resolved, DEFAULT_LANGUAGE)

    async def _dispatch(self, chat_id: int, platform: Platform, text: str, options: Dict[str, Any], label: str) -> bool:
        adapter = self.adapters.get(platform)
        if adapter is None:
            logger.warning(f"Cannot deliver '{label}' to {chat_id}: {platform.value} adapter not available")
            return False
        try:
            await adapter.send(chat_id, text, **options)
            logger.debug(f"Delivered '{label}' to {chat_id} via {platform.value}")
            return True
        except Exception as e:
            logger.error(f"Failed to deliver '{label}' to {chat_id} via {platform.value}: {e} | {text[:100]!r}")
            return False
