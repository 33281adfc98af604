"""Signup interactions: card buttons and the character/role choosers.

Flow for the Sign Up button::

    cooldown -> prior signup? -> linked account? -> event/game/characters
             -> direct confirm | character chooser -> role chooser -> confirm

Tentative and Decline skip the choosers and only set a status. Every
committed write is followed by exactly one card refresh.

All replies go through the acknowledgment guard in ``rollcall.discord.ack``:
each interaction is deferred once, then answered by editing the deferred
response.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

import discord

from rollcall.core.cooldown import CooldownTracker
from rollcall.core.selection import (
    CHARACTER_SELECT,
    DECLINE,
    SIGNUP,
    TENTATIVE,
    CustomId,
    parse_button_id,
    parse_menu_id,
    parse_role,
    plan_anonymous_signup,
    plan_linked_signup,
    step_after_character,
)
from rollcall.discord.ack import defer_button, defer_menu, safe_reply
from rollcall.discord.views import CharacterSelectView, RoleSelectView
from rollcall.models.signup import AnonymousIdentity, SignupRef

if TYPE_CHECKING:
    from rollcall.core.services import IdentityService, RosterService
    from rollcall.discord.sync import RosterSynchronizer
    from rollcall.models.signup import (
        Character,
        EventInfo,
        LinkedUser,
        SignupRole,
        SignupStatus,
    )

logger = logging.getLogger(__name__)

PLEASE_WAIT = "Please wait a moment before trying again."
ALREADY_SIGNED_UP = (
    "You're already signed up! Use the Tentative or Decline buttons to change your status."
)
STATUS_CHANGED_TO_SIGNED_UP = "Your status has been changed to **signed up**!"
EVENT_NOT_FOUND = "Event not found."
LINKED_ACCOUNT_MISSING = "Could not find your linked account. Please try again."
GENERIC_FAILURE = "Something went wrong. Please try again."

STATUS_REPLIES: dict[str, str] = {
    "tentative": "You're marked as **tentative**.",
    "declined": "You've **declined** this event.",
}


@dataclasses.dataclass(frozen=True)
class ButtonPress:
    """A click on one of an event card's buttons."""

    interaction: discord.Interaction
    custom_id: CustomId


@dataclasses.dataclass(frozen=True)
class MenuSelection:
    """A choice made in a character or role chooser."""

    interaction: discord.Interaction
    custom_id: CustomId
    values: tuple[str, ...] = ()


def parse_component(interaction: discord.Interaction) -> ButtonPress | MenuSelection | None:
    """Classify a component interaction, or None if it is not a signup component.

    Buttons and string selects are told apart by the component type in the raw
    interaction payload; custom ids that do not parse are not ours.
    """
    if interaction.type != discord.InteractionType.component:
        return None
    data = interaction.data or {}
    raw_id = data.get("custom_id")
    if not isinstance(raw_id, str):
        return None

    component_type = data.get("component_type")
    if component_type == discord.ComponentType.button.value:
        parsed = parse_button_id(raw_id)
        return ButtonPress(interaction, parsed) if parsed else None
    if component_type == discord.ComponentType.string_select.value:
        parsed = parse_menu_id(raw_id)
        if parsed is None:
            return None
        values = tuple(str(v) for v in data.get("values") or ())
        return MenuSelection(interaction, parsed, values)
    return None


def _avatar_key(user: discord.abc.User) -> str | None:
    avatar = user.avatar
    return avatar.key if avatar is not None else None


class SignupInteractionHandler:
    """Handles signup buttons and choosers for every event card.

    Owns the cooldown map; one instance lives for the life of the bot.
    """

    def __init__(
        self,
        roster: RosterService,
        identity: IdentityService,
        synchronizer: RosterSynchronizer,
        *,
        cooldown: CooldownTracker | None = None,
        client_url: str = "",
    ) -> None:
        self.roster = roster
        self.identity = identity
        self.synchronizer = synchronizer
        self.cooldown = cooldown if cooldown is not None else CooldownTracker()
        self.client_url = client_url

    # --- Entry points ---

    async def on_button(self, press: ButtonPress) -> None:
        interaction = press.interaction
        action = press.custom_id.action
        event_id = press.custom_id.event_id
        try:
            if not await defer_button(interaction):
                return
            if not self.cooldown.should_accept(str(interaction.user.id), event_id):
                logger.info(
                    "signup_cooldown_rejected event=%d user=%s action=%s",
                    event_id,
                    interaction.user.id,
                    action,
                )
                await safe_reply(interaction, content=PLEASE_WAIT)
                return

            if action == SIGNUP:
                await self._handle_signup(interaction, event_id)
            elif action == TENTATIVE:
                await self._handle_status(interaction, event_id, "tentative")
            elif action == DECLINE:
                await self._handle_status(interaction, event_id, "declined")
        except Exception:  # Last-resort handler: reply generically, never propagate
            logger.exception(
                "signup_button_failed event=%d action=%s user=%s",
                event_id,
                action,
                interaction.user.id,
            )
            await self._reply_failure(interaction)

    async def on_select_menu(self, selection: MenuSelection) -> None:
        interaction = selection.interaction
        custom_id = selection.custom_id
        event_id = custom_id.event_id
        try:
            if not selection.values:
                return
            if not await defer_menu(interaction):
                return

            value = selection.values[0]
            if custom_id.action == CHARACTER_SELECT:
                await self._on_character_chosen(interaction, event_id, value)
            else:
                await self._on_role_chosen(interaction, event_id, custom_id.character_id, value)
        except Exception:  # Last-resort handler: reply generically, never propagate
            logger.exception(
                "signup_menu_failed event=%d step=%s user=%s",
                event_id,
                custom_id.action,
                interaction.user.id,
            )
            await self._reply_failure(interaction)

    async def _reply_failure(self, interaction: discord.Interaction) -> None:
        try:
            await safe_reply(interaction, content=GENERIC_FAILURE, view=None)
        except discord.HTTPException:
            logger.exception("signup_failure_reply_failed interaction=%s", interaction.id)

    # --- Buttons ---

    async def _handle_signup(self, interaction: discord.Interaction, event_id: int) -> None:
        discord_user_id = str(interaction.user.id)
        existing = await self.roster.find_by_user(event_id, discord_user_id)
        if existing is not None:
            if existing.status == "signed_up":
                await safe_reply(interaction, content=ALREADY_SIGNED_UP)
                return
            await self.roster.update_status(event_id, existing.ref(), "signed_up")
            await safe_reply(interaction, content=STATUS_CHANGED_TO_SIGNED_UP)
            await self.synchronizer.refresh_card(event_id)
            return

        linked = await self.identity.find_linked_identity(discord_user_id)
        if linked is None:
            await self._handle_anonymous_signup(interaction, event_id)
            return

        event = await self.identity.get_event(event_id)
        if event is None:
            await safe_reply(interaction, content=EVENT_NOT_FOUND)
            return

        game = await self.identity.get_game(event.game_id) if event.game_id else None
        characters = await self.identity.list_characters(linked.id, game.id) if game else []
        plan = plan_linked_signup(event, game, characters)

        if plan.step == "character_pick":
            await safe_reply(
                interaction,
                content=f"Pick a character for **{event.title}**:",
                view=CharacterSelectView(event_id, plan.characters),
            )
            return

        if plan.step == "confirm" and plan.character is not None:
            await self._confirm_linked(interaction, event, linked, plan.character)
            return

        await self.roster.signup(event_id, linked.id)
        content = f"You're signed up for **{event.title}**!"
        if plan.nudge and self.client_url:
            content += (
                f"\nTip: [Add a character]({self.client_url}/profile) "
                "to choose your class and role next time."
            )
        await safe_reply(interaction, content=content)
        await self.synchronizer.refresh_card(event_id)

    async def _handle_anonymous_signup(
        self, interaction: discord.Interaction, event_id: int
    ) -> None:
        event = await self.identity.get_event(event_id)
        if event is None:
            await safe_reply(interaction, content=EVENT_NOT_FOUND)
            return

        plan = plan_anonymous_signup(event)
        if plan.step == "role_pick":
            await safe_reply(
                interaction, content="Select your role:", view=RoleSelectView(event_id)
            )
            return

        user = interaction.user
        await self.roster.signup_anonymous(
            event_id,
            AnonymousIdentity(
                discord_user_id=str(user.id), username=user.name, avatar=_avatar_key(user)
            ),
        )
        await safe_reply(
            interaction,
            content=f"You're signed up as **{user.name}**!{self._account_link()}",
        )
        await self.synchronizer.refresh_card(event_id)

    async def _handle_status(
        self, interaction: discord.Interaction, event_id: int, status: SignupStatus
    ) -> None:
        user = interaction.user
        discord_user_id = str(user.id)
        existing = await self.roster.find_by_user(event_id, discord_user_id)
        if existing is not None:
            await self.roster.update_status(event_id, existing.ref(), status)
        else:
            linked = await self.identity.find_linked_identity(discord_user_id)
            if linked is not None:
                await self.roster.signup(event_id, linked.id)
                await self.roster.update_status(event_id, SignupRef(user_id=linked.id), status)
            else:
                await self.roster.signup_anonymous(
                    event_id,
                    AnonymousIdentity(
                        discord_user_id=discord_user_id,
                        username=user.name,
                        avatar=_avatar_key(user),
                        status=status,
                    ),
                )

        await safe_reply(interaction, content=STATUS_REPLIES[status])
        await self.synchronizer.refresh_card(event_id)

    # --- Choosers ---

    async def _on_character_chosen(
        self, interaction: discord.Interaction, event_id: int, character_id: str
    ) -> None:
        linked = await self.identity.find_linked_identity(str(interaction.user.id))
        if linked is None:
            await safe_reply(interaction, content=LINKED_ACCOUNT_MISSING, view=None)
            return

        character = await self.identity.get_character(linked.id, character_id)
        event = await self.identity.get_event(event_id)
        if event is None:
            await safe_reply(interaction, content=EVENT_NOT_FOUND, view=None)
            return

        if step_after_character(event) == "role_pick":
            await safe_reply(
                interaction,
                content=f"Playing **{character.name}**. Select your role:",
                view=RoleSelectView(event_id, character.id),
            )
            return

        await self._confirm_linked(interaction, event, linked, character)

    async def _on_role_chosen(
        self,
        interaction: discord.Interaction,
        event_id: int,
        character_id: str | None,
        value: str,
    ) -> None:
        role = parse_role(value)
        if role is None:
            logger.warning("signup_role_unknown event=%d value=%r", event_id, value)
            return

        if character_id is None:
            user = interaction.user
            await self.roster.signup_anonymous(
                event_id,
                AnonymousIdentity(
                    discord_user_id=str(user.id),
                    username=user.name,
                    avatar=_avatar_key(user),
                    role=role,
                ),
            )
            await safe_reply(
                interaction,
                content=f"You're signed up as **{user.name}** ({role})!{self._account_link()}",
                view=None,
            )
            await self.synchronizer.refresh_card(event_id)
            return

        linked = await self.identity.find_linked_identity(str(interaction.user.id))
        if linked is None:
            await safe_reply(interaction, content=LINKED_ACCOUNT_MISSING, view=None)
            return
        character = await self.identity.get_character(linked.id, character_id)
        event = await self.identity.get_event(event_id)
        if event is None:
            await safe_reply(interaction, content=EVENT_NOT_FOUND, view=None)
            return
        await self._confirm_linked(interaction, event, linked, character, role)

    # --- Commit ---

    async def _confirm_linked(
        self,
        interaction: discord.Interaction,
        event: EventInfo,
        linked: LinkedUser,
        character: Character,
        role: SignupRole | None = None,
    ) -> None:
        """Sign up with a character (and role, on role-typed events)."""
        signup = await self.roster.signup(event.id, linked.id, slot_role=role)
        await self.roster.confirm(event.id, signup.id, linked.id, character.id)
        role_text = f" ({role})" if role else ""
        await safe_reply(
            interaction,
            content=(
                f"You're signed up for **{event.title}** as **{character.name}**{role_text}!"
            ),
            view=None,
        )
        await self.synchronizer.refresh_card(event.id)

    def _account_link(self) -> str:
        if not self.client_url:
            return ""
        return (
            f"\n[Create an account]({self.client_url}) to manage characters and get reminders."
        )
