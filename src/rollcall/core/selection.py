"""Signup selection flow: custom-id codec and step decisions.

The flow keeps no server-side session. Each chooser carries its continuation
in the Discord custom id of the next component::

    <action>:<event_id>
    <action>:<event_id>:<character_id>

Every step re-parses that id. Anything that does not parse is not ours and is
ignored. The step decisions here are pure; the Discord handlers in
``rollcall.discord.signup`` perform the lookups and writes around them.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import Literal

from rollcall.models.signup import SIGNUP_ROLES, Character, EventInfo, GameInfo, SignupRole

SIGNUP = "signup"
TENTATIVE = "tentative"
DECLINE = "decline"
CHARACTER_SELECT = "character_select"
ROLE_SELECT = "role_select"

BUTTON_ACTIONS: frozenset[str] = frozenset({SIGNUP, TENTATIVE, DECLINE})
MENU_ACTIONS: frozenset[str] = frozenset({CHARACTER_SELECT, ROLE_SELECT})

# Discord limits.
MAX_CUSTOM_ID_LENGTH = 100
MAX_SELECT_OPTIONS = 25

SignupStep = Literal["direct_confirm", "character_pick", "role_pick", "confirm"]


@dataclasses.dataclass(frozen=True)
class CustomId:
    """Parsed selection state: action, event, and the character chosen so far."""

    action: str
    event_id: int
    character_id: str | None = None

    def encode(self) -> str:
        parts = [self.action, str(self.event_id)]
        if self.character_id is not None:
            parts.append(self.character_id)
        encoded = ":".join(parts)
        if len(encoded) > MAX_CUSTOM_ID_LENGTH:
            msg = f"custom id too long ({len(encoded)} > {MAX_CUSTOM_ID_LENGTH})"
            raise ValueError(msg)
        return encoded


def parse_custom_id(raw: str) -> CustomId | None:
    """Split a custom id into its parts, or None if it is malformed.

    The character segment is everything after the second colon, kept verbatim.
    """
    parts = raw.split(":", 2)
    if len(parts) < 2:
        return None
    action, event_part = parts[0], parts[1]
    if not action or not (event_part.isascii() and event_part.isdigit()):
        return None
    character_id: str | None = None
    if len(parts) == 3:
        character_id = parts[2]
        if not character_id:
            return None
    return CustomId(action=action, event_id=int(event_part), character_id=character_id)


def parse_button_id(raw: str) -> CustomId | None:
    """Card buttons are exactly ``<action>:<event_id>`` with a known action."""
    parsed = parse_custom_id(raw)
    if parsed is None or parsed.character_id is not None:
        return None
    if parsed.action not in BUTTON_ACTIONS:
        return None
    return parsed


def parse_menu_id(raw: str) -> CustomId | None:
    """Select menus: the character chooser never carries a character yet."""
    parsed = parse_custom_id(raw)
    if parsed is None or parsed.action not in MENU_ACTIONS:
        return None
    if parsed.action == CHARACTER_SELECT and parsed.character_id is not None:
        return None
    return parsed


def character_select_id(event_id: int) -> str:
    return CustomId(CHARACTER_SELECT, event_id).encode()


def role_select_id(event_id: int, character_id: str | None = None) -> str:
    return CustomId(ROLE_SELECT, event_id, character_id).encode()


def parse_role(value: str) -> SignupRole | None:
    """Map a role-chooser value onto a known role, or None."""
    for role in SIGNUP_ROLES:
        if value == role:
            return role
    return None


@dataclasses.dataclass(frozen=True)
class SignupPlan:
    """The step that follows LinkedCheck.

    ``character`` is set when the flow can confirm without asking (a single
    character on a flat event). ``characters`` holds the chooser options.
    ``nudge`` asks the handler to suggest adding a character; it is shown only
    when a public URL is configured.
    """

    step: SignupStep
    character: Character | None = None
    characters: tuple[Character, ...] = ()
    nudge: bool = False


def plan_linked_signup(
    event: EventInfo,
    game: GameInfo | None,
    characters: Sequence[Character] | None,
) -> SignupPlan:
    """Decide the next step for a linked member signing up fresh.

    - no game (or unknown game): direct confirm, characters never consulted
    - no characters: direct confirm, nudging when the game has roles
    - role-typed event or several characters: character chooser
    - exactly one character on a flat event: confirm with it
    """
    if game is None or not characters:
        nudge = game is not None and game.has_roles
        return SignupPlan(step="direct_confirm", nudge=nudge)

    if event.is_role_typed or len(characters) > 1:
        return SignupPlan(
            step="character_pick",
            characters=tuple(characters[:MAX_SELECT_OPTIONS]),
        )

    return SignupPlan(step="confirm", character=characters[0])


def plan_anonymous_signup(event: EventInfo) -> SignupPlan:
    """Unlinked members never pick characters; role-typed events still need a role."""
    if event.is_role_typed:
        return SignupPlan(step="role_pick")
    return SignupPlan(step="direct_confirm")


def step_after_character(event: EventInfo) -> SignupStep:
    return "role_pick" if event.is_role_typed else "confirm"
