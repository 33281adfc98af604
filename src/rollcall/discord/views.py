"""Discord UI views for the signup choosers.

CharacterSelectView: pick one of a member's characters for the event's game.
RoleSelectView: pick Tank / Healer / DPS on a role-typed event.

Selections are not handled through item callbacks. The bot routes every
component interaction by custom id (see ``rollcall.core.selection``), so a
chooser keeps working after a restart.
"""

from __future__ import annotations

from collections.abc import Sequence

import discord

from rollcall.core.selection import (
    MAX_SELECT_OPTIONS,
    character_select_id,
    role_select_id,
)
from rollcall.discord.embeds import ROLE_EMOJIS, ROLE_LABELS
from rollcall.models.signup import Character

# Discord limits for select option text.
_MAX_LABEL = 100
_MAX_DESCRIPTION = 100

CHOOSER_TIMEOUT_SECONDS = 300


def character_option(character: Character) -> discord.SelectOption:
    """One chooser entry: name as the label, class/spec/level as the description."""
    details = [part for part in (character.class_name, character.spec) if part]
    if character.level:
        details.append(f"Lv {character.level}")
    description = " \u00b7 ".join(details) or None
    return discord.SelectOption(
        label=character.name[:_MAX_LABEL],
        value=character.id,
        description=description[:_MAX_DESCRIPTION] if description else None,
        emoji="\u2b50" if character.is_main else None,
    )


class CharacterSelectView(discord.ui.View):
    """A single select menu listing the member's characters (at most 25)."""

    def __init__(self, event_id: int, characters: Sequence[Character]) -> None:
        super().__init__(timeout=CHOOSER_TIMEOUT_SECONDS)
        self.event_id = event_id
        options = [character_option(c) for c in characters[:MAX_SELECT_OPTIONS]]
        self.select: discord.ui.Select = discord.ui.Select(
            custom_id=character_select_id(event_id),
            placeholder="Pick a character",
            min_values=1,
            max_values=1,
            options=options,
        )
        self.add_item(self.select)


class RoleSelectView(discord.ui.View):
    """Role chooser. Carries the chosen character forward when there is one."""

    def __init__(self, event_id: int, character_id: str | None = None) -> None:
        super().__init__(timeout=CHOOSER_TIMEOUT_SECONDS)
        self.event_id = event_id
        self.character_id = character_id
        self.select: discord.ui.Select = discord.ui.Select(
            custom_id=role_select_id(event_id, character_id),
            placeholder="Select your role",
            min_values=1,
            max_values=1,
            options=[
                discord.SelectOption(label=ROLE_LABELS[role], value=role, emoji=emoji)
                for role, emoji in ROLE_EMOJIS.items()
            ],
        )
        self.add_item(self.select)
