from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from telegram import Update
from telegram.ext import ContextTypes

from .api import SleeperClient
from .auth import guard_admin
from .config import config, logger
from .digest import DigestService
from .formatting import escape_html, fmt_digest, fmt_leagues
from .http import UpstreamError
from .i18n import get_supported_languages, is_language_supported, t
from .jobs import JobManager
from .messenger import Messenger, Platform
from .storage import Store
from .timeutils import get_common_timezones, is_valid_timezone


SERVICES_KEY = "services"
ALERT_FLAGS = ("pregame", "scoring", "waivers")
ON_VALUES = ("on", "true", "yes", "1")
OFF_VALUES = ("off", "false", "no", "0")


@dataclass
class BotServices:
    client: SleeperClient
    store: Store
    messenger: Messenger
    digest: DigestService
    jobs: JobManager


def get_services(context: ContextTypes.DEFAULT_TYPE) -> BotServices:
    return context.application.bot_data[SERVICES_KEY]


async def _lang(services: BotServices, chat_id: int) -> str:
    return await services.messenger.language_for(chat_id, Platform.TELEGRAM.value)


async def _reply(update: Update, text: str) -> None:
    await update.effective_message.reply_text(text, parse_mode="HTML", disable_web_page_preview=True)


async def link_account(
    client: SleeperClient,
    store: Store,
    chat_id: int,
    platform: str,
    username: str,
    display_name: str | None = None,
    sport: str = "nfl",
) -> Tuple[str, int]:
    """Resolve ``username`` upstream and link the chat user to all their leagues for the current season.

    Raises LookupError when the username is unknown and ValueError when the
    user has no leagues this season. Returns the upstream user id and the
    number of leagues linked.
    """
    upstream_user_id = await client.get_user_id_by_username(username)
    if not upstream_user_id:
        raise LookupError(username)

    state = await client.get_state(sport)
    leagues = await client.get_user_leagues(upstream_user_id, sport, state.season)
    if not leagues:
        raise ValueError(state.season)

    items: List[Dict[str, Any]] = []
    for league in leagues:
        rosters = await client.get_rosters(league["league_id"])
        roster = next((r for r in rosters if r.owner_id == upstream_user_id), None)
        items.append({
            "league_id": league["league_id"],
            "name": league.get("name") or league["league_id"],
            "season": league.get("season") or state.season,
            "sport": league.get("sport") or sport,
            "team_id": str(roster.roster_id) if roster else None,
        })

    linked = await store.sync_user_leagues(chat_id, platform, username, upstream_user_id, items, display_name)
    return upstream_user_id, linked


async def start_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    user = update.effective_user
    await services.store.ensure_user(user.id, Platform.TELEGRAM.value, user.full_name)
    await _reply(update, t("greet", lang=await _lang(services, user.id)))


async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    await _reply(update, t("help", lang=await _lang(services, update.effective_user.id)))


async def link_sleeper_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    user = update.effective_user
    lang = await _lang(services, user.id)

    if not context.args:
        await _reply(update, t("error_command_format", {"format": "/link_sleeper &lt;username&gt;"}, lang))
        return

    username = context.args[0].strip()
    await _reply(update, t("linking_user", {"username": escape_html(username)}, lang))
    try:
        _, linked = await link_account(
            services.client, services.store, user.id, Platform.TELEGRAM.value, username, user.full_name
        )
    except LookupError:
        await _reply(update, t("user_not_found", {"username": escape_html(username)}, lang))
        return
    except ValueError as e:
        await _reply(update, t("no_leagues_found", {"username": escape_html(username), "season": str(e)}, lang))
        return
    except UpstreamError as e:
        logger.error(f"Sleeper API error linking {username} for {user.id}: {e}")
        await _reply(update, t("error_sleeper_api", lang=lang))
        return

    await _reply(update, t("linked_ok", {"username": escape_html(username)}, lang) + "\n" +
                 t("leagues_synced", {"count": linked}, lang))


async def leagues_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)
    leagues = await services.store.list_user_leagues(chat_id)
    await _reply(update, fmt_leagues(lang, leagues))


async def today_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)

    try:
        digests = await services.digest.week_digest(chat_id, lang=lang)
    except UpstreamError as e:
        logger.error(f"Sleeper API error building digest for {chat_id}: {e}")
        await _reply(update, t("error_sleeper_api", lang=lang))
        return

    if not digests:
        await _reply(update, t("no_games", lang=lang))
        return
    for digest in digests:
        await _reply(update, fmt_digest(lang, digest))


async def timezone_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)

    if not context.args:
        user = await services.store.get_user(chat_id)
        current = user.tz if user else config.DEFAULT_TIMEZONE
        await _reply(update, t("current_timezone", {"timezone": current}, lang))
        return

    tz = context.args[0].strip()
    if not is_valid_timezone(tz):
        await _reply(update, t("invalid_timezone", {"examples": ", ".join(get_common_timezones()[:5])}, lang))
        return

    await services.store.set_timezone(chat_id, tz, Platform.TELEGRAM.value)
    await _reply(update, t("timezone_changed", {"timezone": tz}, lang))


async def lang_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)

    if not context.args:
        await _reply(update, t("current_language", {"language": lang}, lang))
        return

    new_lang = context.args[0].strip().lower()
    if not is_language_supported(new_lang):
        await _reply(update, t("invalid_language", {"languages": ", ".join(get_supported_languages())}, lang))
        return

    await services.store.set_language(chat_id, new_lang, Platform.TELEGRAM.value)
    await _reply(update, t("language_changed", {"language": new_lang}, new_lang))


def _parse_switch(value: str) -> Optional[bool]:
    value = value.lower()
    if value in ON_VALUES:
        return True
    if value in OFF_VALUES:
        return False
    return None


async def alerts_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)
    usage = t("error_command_format", {"format": "/alerts &lt;league_id&gt; &lt;pregame|scoring|waivers&gt; &lt;on|off&gt;"}, lang)

    args = context.args or []
    if len(args) != 3 or not args[0].isdigit() or args[1].lower() not in ALERT_FLAGS:
        await _reply(update, usage)
        return
    enabled = _parse_switch(args[2])
    if enabled is None:
        await _reply(update, usage)
        return

    league_id = int(args[0])
    try:
        flags = await services.store.update_alert_preferences(chat_id, league_id, **{args[1].lower(): enabled})
    except LookupError:
        await _reply(update, t("no_leagues", lang=lang))
        return

    def onoff(flag: bool) -> str:
        return "✅" if flag else "❌"

    await _reply(update, t("alerts_updated", {
        "league": league_id,
        "pregame": onoff(flags.pregame),
        "scoring": onoff(flags.scoring),
        "waivers": onoff(flags.waivers),
    }, lang))


async def remove_league_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Stop tracking one of the user's leagues; its alert preferences go with it."""
    services = get_services(context)
    chat_id = update.effective_user.id
    lang = await _lang(services, chat_id)

    args = context.args or []
    if len(args) != 1 or not args[0].isdigit():
        await _reply(update, t("error_command_format", {"format": "/remove_league &lt;league_id&gt;"}, lang))
        return

    league_id = int(args[0])
    leagues = await services.store.list_user_leagues(chat_id)
    league = next((l for l in leagues if l.id == league_id), None)
    if league is None or not await services.store.remove_user_league(chat_id, league_id):
        await _reply(update, t("league_not_linked", {"league": league_id}, lang))
        return

    await _reply(update, t("league_removed", {"league": escape_html(league.name)}, lang))


async def refresh_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return
    services = get_services(context)

    args = context.args or []
    if not args or not args[0].isdigit() or (len(args) > 1 and not args[1].isdigit()):
        await _reply(update, "Usage: /refresh &lt;league_id&gt; [week]")
        return

    league_id = int(args[0])
    week = int(args[1]) if len(args) > 1 else None
    try:
        count = await services.jobs.refresh_league(league_id, week)
    except LookupError:
        await _reply(update, f"❌ League {league_id} not found")
        return
    except UpstreamError as e:
        await _reply(update, f"❌ Refresh failed: {escape_html(str(e))}")
        return

    await _reply(update, f"✅ League {league_id} refreshed ({count} matchups)")


async def status_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if not await guard_admin(update, context):
        return
    services = get_services(context)

    status = services.jobs.get_status()
    lines = [
        "🩺 <b>Bot status</b>",
        f"Jobs running: {'yes' if status['running'] else 'no'}",
        f"Tracked drafts: {status['trackedDrafts']}",
        f"API cache entries: {services.client.cache_stats()['size']}",
        "",
    ]
    for name, job in status["jobs"].items():
        last_run = job["last_run"] or "never"
        flag = "⏳" if job["in_flight"] else ("🟢" if job["running"] else "🔴")
        lines.append(f"{flag} <code>{name}</code>: {job['runs']} runs, {job['errors']} errors, last {last_run}")
    await _reply(update, "\n".join(lines))
