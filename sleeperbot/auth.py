from __future__ import annotations

from telegram import Update
from telegram.ext import ContextTypes

from .config import config


def is_admin(update: Update) -> bool:
    if not update.effective_user or not config.ADMIN_USER_ID:
        return False
    return update.effective_user.id == config.ADMIN_USER_ID


async def guard_admin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    if not is_admin(update):
        if update.effective_chat and update.effective_chat.type == "private":
            await context.bot.send_message(update.effective_chat.id, "❌ Not authorized.")
        return False
    return True
