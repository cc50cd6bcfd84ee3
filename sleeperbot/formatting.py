from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .i18n import t


MAX_INJURED_PLAYERS = 5
MAX_PLAYING_PLAYERS = 10

DAY_NAMES = {
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    "uk": ["Понеділок", "Вівторок", "Середа", "Четвер", "Пʼятниця", "Субота", "Неділя"],
}


def escape_html(text: str) -> str:
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def day_name(weekday: int, lang: str) -> str:
    return DAY_NAMES.get(lang, DAY_NAMES["en"])[weekday]


def _league_line(league_names: Sequence[str], lang: str) -> str:
    return t("leagues_label", {"leagues": ", ".join(escape_html(n) for n in league_names)}, lang)


def fmt_team_reminder(
    lang: str,
    week: int,
    league_names: Sequence[str],
    injured: Sequence[str],
    bye_teams: Sequence[str],
) -> str:
    lines: List[str] = [
        t("team_reminder_title", lang=lang),
        "",
        f"🏈 {t('week_label', {'week': week}, lang)}",
        _league_line(league_names, lang),
        "",
    ]
    if injured:
        lines.append(t("team_reminder_injured", lang=lang))
        lines.extend(escape_html(p) for p in injured[:MAX_INJURED_PLAYERS])
        lines.append("")
    if bye_teams:
        lines.append(t("team_reminder_bye", lang=lang))
        lines.append(", ".join(escape_html(team) for team in bye_teams))
        lines.append("")
    lines.append(t("team_reminder_footer", lang=lang))
    return "\n".join(lines)


def fmt_waiver_reminder(lang: str, league_names: Sequence[str]) -> str:
    return "\n".join([
        t("waiver_title", lang=lang),
        "",
        t("waiver_body", lang=lang),
        "",
        _league_line(league_names, lang),
        "",
        t("waiver_footer", lang=lang),
    ])


def fmt_game_day(
    lang: str,
    weekday: int,
    week: int,
    league_names: Sequence[str],
    players: Sequence[str],
    games: Sequence[str],
) -> str:
    lines: List[str] = [
        t("gameday_title", {"day": day_name(weekday, lang)}, lang),
        "",
        f"📅 {t('week_label', {'week': week}, lang)}",
        _league_line(league_names, lang),
        "",
    ]
    if players:
        lines.append(t("gameday_players", lang=lang))
        lines.extend(escape_html(p) for p in players[:MAX_PLAYING_PLAYERS])
        lines.append("")
    lines.append(t("gameday_games", lang=lang))
    lines.extend(escape_html(g) for g in games)
    lines.append("")
    lines.append(t("gameday_footer", lang=lang))
    return "\n".join(lines)


def fmt_digest(lang: str, digest: Dict[str, Any]) -> str:
    lines = [
        t("digest_header", {"league": escape_html(digest["league"]), "week": digest["week"]}, lang),
        "",
        t("digest_team", {"team": escape_html(digest["team"])}, lang),
    ]
    if digest.get("opponent"):
        lines.append(t("digest_opponent", {"opponent": escape_html(digest["opponent"])}, lang))
    if digest.get("my_score") is not None and digest.get("opp_score") is not None:
        lines.append(t("digest_score", {"myScore": f"{digest['my_score']:.2f}", "oppScore": f"{digest['opp_score']:.2f}"}, lang))
    if digest.get("top_players"):
        lines.append("")
        lines.append(t("digest_top_players", {"players": ", ".join(escape_html(p) for p in digest["top_players"])}, lang))
    if digest.get("reminders"):
        lines.append("")
        lines.append(t("digest_reminders", {"reminders": ", ".join(digest["reminders"])}, lang))
    return "\n".join(lines)


def fmt_leagues(lang: str, leagues: Sequence[Any]) -> str:
    if not leagues:
        return t("no_leagues", lang=lang)

    def onoff(flag: bool) -> str:
        return "✅" if flag else "❌"

    blocks = [t("your_leagues", lang=lang)]
    for league in leagues:
        blocks.append(t("league_info", {
            "name": escape_html(league.name),
            "id": league.id,
            "teamId": league.team_id,
            "pregame": onoff(league.alerts.pregame),
            "scoring": onoff(league.alerts.scoring),
            "waivers": onoff(league.alerts.waivers),
        }, lang))
    return "\n\n".join(blocks)
