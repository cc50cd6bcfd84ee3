from __future__ import annotations

import re
from typing import Any, Dict, List

from .config import config, logger


DEFAULT_LANGUAGE = config.DEFAULT_LANGUAGE

EN: Dict[str, str] = {
    "greet": (
        "👋 Hello! I'm a bot for Sleeper NFL. Add your profile with /link_sleeper &lt;username&gt;.\n\n"
        "<b>Available commands:</b>\n"
        "/link_sleeper &lt;username&gt; - Connect Sleeper\n"
        "/leagues - My leagues\n"
        "/today - Week digest\n"
        "/help - Help"
    ),
    "help": (
        "🏈 <b>Bot commands:</b>\n\n"
        "/start - Start working with the bot\n"
        "/help - Show this help\n"
        "/lang &lt;code&gt; - Change language\n"
        "/timezone &lt;zone&gt; - Change timezone\n"
        "/link_sleeper &lt;username&gt; - Link Sleeper profile\n"
        "/leagues - Show my leagues and settings\n"
        "/alerts &lt;league&gt; &lt;pregame|scoring|waivers&gt; &lt;on|off&gt; - Toggle alerts\n"
        "/remove_league &lt;league&gt; - Stop tracking a league\n"
        "/today - Current week digest\n\n"
        "🔔 <b>Automatic notifications:</b>\n"
        "• Reminder 1 hour before draft\n"
        "• Notification when it's your turn to pick\n"
        "• Waiver, lineup and game-day reminders"
    ),
    "linked_ok": "✅ Linked Sleeper user: {username}",
    "linking_user": "🔗 Linking user {username}...",
    "user_not_found": "❌ User {username} not found in Sleeper. Check the username.",
    "no_leagues_found": "User {username} has no active NFL leagues for season {season}.",
    "leagues_synced": "Synced {count} leagues.",
    "your_leagues": "🏆 <b>Your leagues:</b>",
    "league_info": "<b>{name}</b> (#{id})\nTeam: {teamId} | Pregame: {pregame} | Scoring: {scoring} | Waivers: {waivers}",
    "no_leagues": "You have no connected leagues. Use /link_sleeper &lt;username&gt;.",
    "digest_header": "🏈 Sleeper | League: {league} | Week {week}",
    "digest_team": "Team: {team}",
    "digest_opponent": "Opponent: {opponent}",
    "digest_score": "Score: {myScore} – {oppScore}",
    "digest_top_players": "Top players: {players}",
    "digest_reminders": "⚠️ Reminders: {reminders}",
    "no_games": "No games today. Have a great day!",
    "waiver_reminder": "Don't forget about waivers!",
    "lineup_reminder": "Check your team lineup!",
    "draft_starting_soon": "🚨 Draft starts in 1 hour!\n\nLeague: {league}\nStart time: {startTime}\n\nPrepare your strategy!",
    "draft_your_turn": "⏰ Your turn in the draft!\n\nLeague: {league}\nRound: {round}\nPick: #{pickNumber}\n\nYou have {timer} seconds to choose!",
    "draft_completed": "✅ Draft completed!\nLeague: {league}\n\nGood luck this season!",
    "team_reminder_title": "📋 <b>Time to check your teams!</b>",
    "team_reminder_injured": "🏥 <b>Injured players:</b>",
    "team_reminder_bye": "😴 <b>Teams on bye:</b>",
    "team_reminder_footer": "✅ Don't forget to update your lineups before Thursday!",
    "waiver_title": "📝 <b>Waiver reminder!</b>",
    "waiver_body": "⏰ Waiver claims close tomorrow (Wednesday)",
    "waiver_footer": "💡 Don't forget to submit claims for the players you need!",
    "gameday_title": "🏈 <b>{day} - Game day!</b>",
    "gameday_players": "⭐ <b>Your players today:</b>",
    "gameday_games": "🎮 <b>Today's games:</b>",
    "gameday_footer": "🔥 Good luck to your players!",
    "week_label": "Week {week}",
    "leagues_label": "🔄 Leagues: {leagues}",
    "current_timezone": "Current timezone: {timezone}",
    "timezone_changed": "Timezone changed to: {timezone}",
    "invalid_timezone": "Invalid timezone. Examples: {examples}",
    "current_language": "Current language: {language}",
    "language_changed": "Language changed to: {language}",
    "invalid_language": "Invalid language. Available languages: {languages}",
    "alerts_updated": "🔔 League {league}: pregame {pregame}, scoring {scoring}, waivers {waivers}",
    "league_removed": "🗑️ League removed: {league}",
    "league_not_linked": "❌ League {league} is not linked to your account. See /leagues.",
    "error_generic": "❌ An error occurred. Please try again later.",
    "error_sleeper_api": "❌ Error connecting to Sleeper API. Try again later.",
    "error_command_format": "Invalid command format. Use: {format}",
}

UK: Dict[str, str] = {
    "greet": (
        "👋 Привіт! Я бот для Sleeper NFL. Додай свій профіль командою /link_sleeper &lt;нікнейм&gt;.\n\n"
        "<b>Доступні команди:</b>\n"
        "/link_sleeper &lt;нікнейм&gt; - Підключити Sleeper\n"
        "/leagues - Мої ліги\n"
        "/today - Дайджест тижня\n"
        "/help - Довідка"
    ),
    "linked_ok": "✅ Підключено користувача Sleeper: {username}",
    "linking_user": "🔗 Підключаю користувача {username}...",
    "user_not_found": "❌ Користувача {username} не знайдено в Sleeper. Перевір нікнейм.",
    "no_leagues_found": "У користувача {username} немає активних NFL ліг на сезон {season}.",
    "leagues_synced": "Синхронізовано ліг: {count}.",
    "your_leagues": "🏆 <b>Твої ліги:</b>",
    "no_leagues": "У тебе немає підключених ліг. Використай /link_sleeper &lt;нікнейм&gt;.",
    "digest_header": "🏈 Sleeper | Ліга: {league} | Тиждень {week}",
    "digest_team": "Команда: {team}",
    "digest_opponent": "Опонент: {opponent}",
    "digest_score": "Рахунок: {myScore} – {oppScore}",
    "digest_top_players": "Топ гравці: {players}",
    "digest_reminders": "⚠️ Нагадування: {reminders}",
    "no_games": "Сьогодні ігор немає. Гарного дня!",
    "waiver_reminder": "Не забудь про waivers!",
    "lineup_reminder": "Перевір склад команди!",
    "draft_starting_soon": "🚨 Драфт починається за 1 годину!\n\nЛіга: {league}\nПочаток: {startTime}\n\nПідготуй стратегію!",
    "draft_your_turn": "⏰ Твоя черга на драфті!\n\nЛіга: {league}\nРаунд: {round}\nПік: #{pickNumber}\n\nУ тебе {timer} секунд на вибір!",
    "draft_completed": "✅ Драфт завершено!\nЛіга: {league}\n\nУдачі в сезоні!",
    "team_reminder_title": "📋 <b>Час перевірити команди!</b>",
    "team_reminder_injured": "🏥 <b>Травмовані гравці:</b>",
    "team_reminder_bye": "😴 <b>Команди на вихідних:</b>",
    "team_reminder_footer": "✅ Не забудьте оновити свої склади до четверга!",
    "waiver_title": "📝 <b>Нагадування про Waivers!</b>",
    "waiver_body": "⏰ Завтра (середа) закривається прийом заявок",
    "waiver_footer": "💡 Не забудьте подати заявки на потрібних гравців!",
    "gameday_title": "🏈 <b>{day} - День гри!</b>",
    "gameday_players": "⭐ <b>Ваші гравці сьогодні:</b>",
    "gameday_games": "🎮 <b>Сьогоднішні ігри:</b>",
    "gameday_footer": "🔥 Удачі вашим гравцям!",
    "week_label": "Тиждень {week}",
    "leagues_label": "🔄 Ліги: {leagues}",
    "current_timezone": "Поточний часовий пояс: {timezone}",
    "timezone_changed": "Часовий пояс змінено на: {timezone}",
    "invalid_timezone": "Невірний часовий пояс. Приклади: {examples}",
    "current_language": "Поточна мова: {language}",
    "language_changed": "Мову змінено на: {language}",
    "invalid_language": "Невірна мова. Доступні мови: {languages}",
    "league_removed": "🗑️ Лігу видалено: {league}",
    "league_not_linked": "❌ Ліга {league} не привʼязана до вашого акаунту. Дивіться /leagues.",
    "error_generic": "❌ Сталася помилка. Спробуй пізніше.",
    "error_sleeper_api": "❌ Помилка з'єднання з Sleeper API. Спробуй пізніше.",
    "error_command_format": "Невірний формат команди. Використай: {format}",
}

LANGUAGES: Dict[str, Dict[str, str]] = {"uk": UK, "en": EN}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def get_supported_languages() -> List[str]:
    return list(LANGUAGES.keys())


def is_language_supported(lang: str | None) -> bool:
    return lang in LANGUAGES


def t(key: str, variables: Dict[str, Any] | None = None, lang: str | None = None) -> str:
    """Translate ``key`` and substitute ``{name}`` placeholders.

    Lookup falls back from ``lang`` to Ukrainian, then English. Placeholders
    with no matching variable are left in the output as-is.
    """
    variables = variables or {}
    table = LANGUAGES.get(lang or DEFAULT_LANGUAGE, UK)
    template = table.get(key) or UK.get(key) or EN.get(key)
    if template is None:
        logger.error(f"Missing translation for key: {key}")
        return key

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(replace, template)
