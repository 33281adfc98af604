"""Tests for the SQLAlchemy-backed roster, identity and card lookups."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from rollcall.core.errors import (
    CharacterNotFound,
    EventNotFound,
    SignupNotFound,
    SignupOwnershipError,
)
from rollcall.core.identity import SqlIdentityService, slot_config_from_json
from rollcall.core.roster import SqlCardLocator, SqlRosterService
from rollcall.db.engine import get_session
from rollcall.db.repository import Repository
from rollcall.models.signup import AnonymousIdentity, SignupRef

START = datetime(2026, 11, 6, 20, 0, tzinfo=UTC)
MMO = {"type": "mmo", "tank": 2, "healer": 4, "dps": 14}


async def seed_event(engine: AsyncEngine, **kwargs) -> int:
    async with get_session(engine) as session:
        event = await Repository(session).create_event(
            "Raid Night", START, START + timedelta(hours=3), **kwargs
        )
        return event.id


async def seed_user(engine: AsyncEngine, username: str = "raider", discord_id: str = "12345"):
    async with get_session(engine) as session:
        user = await Repository(session).create_user(username, discord_id=discord_id)
        return user.id


async def seed_character(engine: AsyncEngine, user_id: int, name: str = "Thrall", **kwargs):
    async with get_session(engine) as session:
        repo = Repository(session)
        game = await repo.create_game("World of Warcraft", has_roles=True)
        character = await repo.create_character(user_id, game.id, name, **kwargs)
        return character.id


@pytest.fixture
def roster(engine: AsyncEngine) -> SqlRosterService:
    return SqlRosterService(engine)


@pytest.fixture
def identity(engine: AsyncEngine) -> SqlIdentityService:
    return SqlIdentityService(engine)


def anon(discord_user_id: str = "555", **kwargs) -> AnonymousIdentity:
    return AnonymousIdentity(discord_user_id=discord_user_id, username="drifter", **kwargs)


class TestLinkedSignup:
    async def test_signup_is_idempotent(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        user_id = await seed_user(engine)
        first = await roster.signup(event_id, user_id)
        second = await roster.signup(event_id, user_id)
        assert first.id == second.id
        assert (await roster.get_roster(event_id)).count == 1

    async def test_signup_carries_user_details(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        user_id = await seed_user(engine)
        signup = await roster.signup(event_id, user_id)
        assert signup.username == "raider"
        assert signup.discord_id == "12345"
        assert signup.status == "signed_up"
        assert signup.confirmation_status == "pending"

    async def test_missing_event(self, engine, roster) -> None:
        user_id = await seed_user(engine)
        with pytest.raises(EventNotFound):
            await roster.signup(999, user_id)

    async def test_flat_event_fills_player_slots(self, engine, roster) -> None:
        event_id = await seed_event(engine, max_attendees=2)
        for i in range(3):
            user_id = await seed_user(engine, f"member{i}", str(100 + i))
            await roster.signup(event_id, user_id)
        assert await roster.get_role_counts(event_id) == {"player": 2}

    async def test_no_capacity_means_no_slot(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        await roster.signup(event_id, await seed_user(engine))
        assert await roster.get_role_counts(event_id) == {}

    async def test_role_typed_event_uses_chosen_role(self, engine, roster) -> None:
        event_id = await seed_event(engine, slot_config=MMO)
        signup = await roster.signup(event_id, await seed_user(engine), slot_role="healer")
        assert signup.role == "healer"
        assert await roster.get_role_counts(event_id) == {"healer": 1}

    async def test_role_typed_event_never_auto_slots(self, engine, roster) -> None:
        event_id = await seed_event(engine, slot_config=MMO, max_attendees=20)
        await roster.signup(event_id, await seed_user(engine))
        assert await roster.get_role_counts(event_id) == {}


class TestAnonymousSignup:
    async def test_creates_discord_only_signup(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        signup = await roster.signup_anonymous(event_id, anon())
        assert signup.user_id is None
        assert signup.discord_user_id == "555"
        assert signup.username == "drifter"
        assert signup.discord_id == "555"

    async def test_idempotent(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        first = await roster.signup_anonymous(event_id, anon())
        second = await roster.signup_anonymous(event_id, anon(status="tentative"))
        assert first.id == second.id
        assert second.status == "signed_up"

    async def test_with_role_and_status(self, engine, roster) -> None:
        event_id = await seed_event(engine, slot_config=MMO)
        signup = await roster.signup_anonymous(event_id, anon(role="tank", status="tentative"))
        assert signup.role == "tank"
        assert signup.status == "tentative"

    async def test_linked_member_takes_linked_path(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        user_id = await seed_user(engine, discord_id="555")
        signup = await roster.signup_anonymous(event_id, anon(status="declined"))
        assert signup.user_id == user_id
        assert signup.discord_user_id is None
        assert signup.status == "declined"

    async def test_found_by_discord_id(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        await roster.signup_anonymous(event_id, anon())
        found = await roster.find_by_user(event_id, "555")
        assert found is not None
        assert found.ref() == SignupRef(discord_user_id="555")
        assert await roster.find_by_user(event_id, "777") is None


class TestStatusAndCancel:
    async def test_update_linked_by_user_id(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        user_id = await seed_user(engine)
        await roster.signup(event_id, user_id)
        updated = await roster.update_status(event_id, SignupRef(user_id=user_id), "tentative")
        assert updated.status == "tentative"

    async def test_update_linked_by_discord_id(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        await roster.signup(event_id, await seed_user(engine))
        updated = await roster.update_status(
            event_id, SignupRef(discord_user_id="12345"), "declined"
        )
        assert updated.status == "declined"

    async def test_update_missing_signup(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        with pytest.raises(SignupNotFound):
            await roster.update_status(event_id, SignupRef(discord_user_id="555"), "declined")

    async def test_empty_ref_rejected(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        with pytest.raises(ValueError, match="SignupRef"):
            await roster.update_status(event_id, SignupRef(), "declined")

    async def test_cancel_frees_slot(self, engine, roster) -> None:
        event_id = await seed_event(engine, slot_config=MMO)
        await roster.signup_anonymous(event_id, anon(role="dps"))
        await roster.cancel(event_id, SignupRef(discord_user_id="555"))
        assert await roster.get_role_counts(event_id) == {}
        assert (await roster.get_roster(event_id)).count == 0


class TestConfirm:
    async def test_first_then_changed(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        user_id = await seed_user(engine)
        first_char = await seed_character(engine, user_id, "Thrall", class_name="Shaman")
        second_char = await seed_character(engine, user_id, "Jaina")
        signup = await roster.signup(event_id, user_id)

        confirmed = await roster.confirm(event_id, signup.id, user_id, first_char)
        assert confirmed.confirmation_status == "confirmed"
        assert confirmed.character is not None
        assert confirmed.character.class_name == "Shaman"

        changed = await roster.confirm(event_id, signup.id, user_id, second_char)
        assert changed.confirmation_status == "changed"
        assert changed.character_id == second_char

    async def test_someone_elses_signup(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        owner = await seed_user(engine)
        other = await seed_user(engine, "other", "67890")
        char_id = await seed_character(engine, other)
        signup = await roster.signup(event_id, owner)
        with pytest.raises(SignupOwnershipError):
            await roster.confirm(event_id, signup.id, other, char_id)

    async def test_someone_elses_character(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        owner = await seed_user(engine)
        other = await seed_user(engine, "other", "67890")
        char_id = await seed_character(engine, other)
        signup = await roster.signup(event_id, owner)
        with pytest.raises(CharacterNotFound):
            await roster.confirm(event_id, signup.id, owner, char_id)

    async def test_missing_signup(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        with pytest.raises(SignupNotFound):
            await roster.confirm(event_id, 999, 1, "char-1")


class TestRoster:
    async def test_missing_event(self, roster) -> None:
        with pytest.raises(EventNotFound):
            await roster.get_roster(999)

    async def test_signups_in_order(self, engine, roster) -> None:
        event_id = await seed_event(engine)
        await roster.signup_anonymous(event_id, anon("1"))
        await roster.signup(event_id, await seed_user(engine))
        await roster.signup_anonymous(event_id, anon("2"))
        snapshot = await roster.get_roster(event_id)
        assert snapshot.count == 3
        assert [s.discord_id for s in snapshot.signups] == ["1", "12345", "2"]


class TestCardLocator:
    async def test_find_card(self, engine) -> None:
        event_id = await seed_event(engine)
        async with get_session(engine) as session:
            await Repository(session).save_event_message(event_id, 111, 222, 333, "filling")

        card = await SqlCardLocator(engine).find_card(event_id, 111)
        assert card is not None
        assert (card.channel_id, card.message_id, card.embed_state) == (222, 333, "filling")
        assert await SqlCardLocator(engine).find_card(event_id, 999) is None


class TestIdentity:
    async def test_linked_identity(self, engine, identity) -> None:
        user_id = await seed_user(engine)
        linked = await identity.find_linked_identity("12345")
        assert linked is not None
        assert linked.id == user_id
        assert await identity.find_linked_identity("99999") is None

    async def test_get_character_checks_owner(self, engine, identity) -> None:
        owner = await seed_user(engine)
        other = await seed_user(engine, "other", "67890")
        char_id = await seed_character(engine, owner, level=70, role="tank")

        character = await identity.get_character(owner, char_id)
        assert character.level == 70
        assert character.role == "tank"
        with pytest.raises(CharacterNotFound):
            await identity.get_character(other, char_id)
        with pytest.raises(CharacterNotFound):
            await identity.get_character(owner, "missing")

    async def test_event_slot_config(self, engine, identity) -> None:
        event_id = await seed_event(engine, slot_config=MMO)
        event = await identity.get_event(event_id)
        assert event is not None
        assert event.is_role_typed
        assert event.slot_config.tank == 2
        assert await identity.get_event(999) is None

    async def test_game(self, engine, identity) -> None:
        async with get_session(engine) as session:
            game = await Repository(session).create_game("Phasmophobia")
        info = await identity.get_game(game.id)
        assert info is not None
        assert not info.has_roles


class TestSlotConfigFromJson:
    def test_valid(self) -> None:
        config = slot_config_from_json(MMO)
        assert config is not None
        assert config.total_role_capacity == 20

    def test_not_a_mapping(self) -> None:
        assert slot_config_from_json(None) is None
        assert slot_config_from_json(["mmo"]) is None

    def test_invalid_counts(self, caplog: pytest.LogCaptureFixture) -> None:
        assert slot_config_from_json({"type": "mmo", "tank": -1}) is None
        assert "slot_config_invalid" in caplog.text
