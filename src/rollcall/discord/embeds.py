"""Event card embed builder.

Every event card has the same anatomy: title, game, date/time with duration,
and the roster breakdown. The embed state only changes the accent color and
whether the signup buttons are attached.
"""

from __future__ import annotations

from datetime import UTC, datetime

import discord

from rollcall.core.selection import DECLINE, SIGNUP, TENTATIVE, CustomId
from rollcall.models.card import CardContext, EmbedState, Participant, RosterView

COLOR_ANNOUNCEMENT = 0x8B5CF6  # Violet: posted, filling, full
COLOR_REMINDER = 0xF59E0B  # Amber: starting soon
COLOR_SIGNUP_CONFIRMATION = 0x22C55E  # Green: live
COLOR_SYSTEM = 0x6B7280  # Gray: completed
COLOR_ERROR = 0xEF4444  # Red: cancelled

_STATE_COLORS: dict[str, int] = {
    "posted": COLOR_ANNOUNCEMENT,
    "filling": COLOR_ANNOUNCEMENT,
    "full": COLOR_ANNOUNCEMENT,
    "imminent": COLOR_REMINDER,
    "live": COLOR_SIGNUP_CONFIRMATION,
    "completed": COLOR_SYSTEM,
    "cancelled": COLOR_ERROR,
}

# States whose cards are read-only.
_CLOSED_STATES = frozenset({"completed", "cancelled"})

ROLE_EMOJIS: dict[str, str] = {
    "tank": "\U0001f6e1\ufe0f",
    "healer": "\U0001f49a",
    "dps": "\u2694\ufe0f",
}

ROLE_LABELS: dict[str, str] = {
    "tank": "Tank",
    "healer": "Healer",
    "dps": "DPS",
}

_ROLE_SECTIONS: tuple[tuple[str, str], ...] = (
    ("tank", "Tanks"),
    ("healer", "Healers"),
    ("dps", "DPS"),
)

TENTATIVE_PREFIX = "\u23f3"
INDENT = "\u2003"


def color_for_state(state: str) -> int:
    return _STATE_COLORS.get(state, COLOR_ANNOUNCEMENT)


def format_duration(start: datetime, end: datetime) -> str:
    """``2h``, ``1h 30m`` or ``45m``."""
    total_minutes = max(int((end - start).total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def _unix(moment: datetime) -> int:
    # SQLite hands back naive datetimes; they are stored as UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp())


def format_participant(participant: Participant) -> str:
    prefix = f"{TENTATIVE_PREFIX} " if participant.status == "tentative" else ""
    role_emoji = ROLE_EMOJIS.get(participant.role or "", "")
    suffix = f" {role_emoji}" if role_emoji else ""
    return f"{INDENT}{prefix}{participant.label}{suffix}"


def _participant_lines(participants: list[Participant]) -> list[str]:
    return [format_participant(p) for p in participants]


def _overflow_line(overflow: int) -> str:
    return f"{INDENT}+ {overflow} more"


def build_roster_lines(view: RosterView) -> list[str]:
    """Roster breakdown for the card body. Empty when there is nothing to show."""
    config = view.slot_config
    if config is not None and config.is_role_typed:
        total = config.total_role_capacity
        lines = [f"\u2500\u2500 ROSTER: {view.signup_count}/{total} \u2500\u2500"]
        sections = [
            (role, label) for role, label in _ROLE_SECTIONS if config.role_capacity(role) > 0
        ]
        for idx, (role, label) in enumerate(sections):
            if idx > 0:
                lines.append("")
            count = view.role_counts.get(role, 0)
            lines.append(
                f"{ROLE_EMOJIS[role]} **{label}** ({count}/{config.role_capacity(role)}):"
            )
            players = _participant_lines([p for p in view.participants if p.role == role])
            lines.extend(players or [f"{INDENT}\u2014"])
        # Signed up without a role slot, e.g. a linked member with no characters.
        shown_roles = {role for role, _ in sections}
        unassigned = [p for p in view.participants if p.role not in shown_roles]
        if unassigned:
            if sections:
                lines.append("")
            lines.append(f"**Unassigned** ({len(unassigned)}):")
            lines.extend(_participant_lines(unassigned))
        if view.overflow:
            lines.append(_overflow_line(view.overflow))
        return lines

    if view.max_attendees:
        header = f"\u2500\u2500 ROSTER: {view.signup_count}/{view.max_attendees} \u2500\u2500"
    elif view.signup_count > 0:
        header = f"\u2500\u2500 ROSTER: {view.signup_count} signed up \u2500\u2500"
    else:
        return []

    lines = [header, *_participant_lines(view.participants)]
    if view.overflow:
        lines.append(_overflow_line(view.overflow))
    return lines


def build_signup_buttons(event_id: int, client_url: str | None = None) -> discord.ui.View:
    """Sign Up / Tentative / Decline, plus a View Event link when a URL is known."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Sign Up",
            style=discord.ButtonStyle.success,
            custom_id=CustomId(SIGNUP, event_id).encode(),
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Tentative",
            style=discord.ButtonStyle.secondary,
            custom_id=CustomId(TENTATIVE, event_id).encode(),
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Decline",
            style=discord.ButtonStyle.danger,
            custom_id=CustomId(DECLINE, event_id).encode(),
        )
    )
    if client_url:
        view.add_item(
            discord.ui.Button(
                label="View Event",
                style=discord.ButtonStyle.link,
                url=f"{client_url}/events/{event_id}",
            )
        )
    return view


def build_event_embed(
    view: RosterView,
    context: CardContext,
    state: EmbedState = "posted",
) -> tuple[discord.Embed, discord.ui.View | None]:
    """Build the event card and its buttons.

    Args:
        view: Roster data, already capped for display.
        context: Community name and public client URL.
        state: Lifecycle state of the card. Completed and cancelled cards
            carry no buttons.
    """
    embed = discord.Embed(title=f"\U0001f4c5 {view.title}", color=color_for_state(state))
    if context.client_url:
        embed.url = f"{context.client_url}/events/{view.event_id}"

    start = _unix(view.start_time)
    body: list[str] = []
    if view.game_name:
        body.append(f"\U0001f3ae **{view.game_name}**")
    body.append(
        f"\U0001f4c6 <t:{start}:f> (<t:{start}:R>) "
        f"({format_duration(view.start_time, view.end_time)})"
    )

    roster = build_roster_lines(view)
    if roster:
        body.append("")
        body.extend(roster)

    description = "\n".join(body)
    # Discord embed description limit is 4096 chars
    if len(description) > 4096:
        description = description[:4090] + "\n..."
    embed.description = description

    if view.game_cover_url:
        embed.set_thumbnail(url=view.game_cover_url)
    embed.set_footer(text=context.community_name or "Raid Ledger")
    embed.timestamp = datetime.now(UTC)

    if state in _CLOSED_STATES:
        return embed, None
    return embed, build_signup_buttons(view.event_id, context.client_url)
