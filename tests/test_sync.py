"""Tests for redrawing event cards after roster writes."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from rollcall.discord.sync import RosterSynchronizer, participant_from_signup
from rollcall.models.card import CardContext, PostedCard
from rollcall.models.signup import (
    Character,
    EventInfo,
    GameInfo,
    RosterSnapshot,
    Signup,
    SlotConfig,
)

START = datetime(2026, 11, 6, 20, 0, tzinfo=UTC)
GUILD_ID = 111222333


def make_event(**overrides) -> EventInfo:
    data = {
        "id": 42,
        "title": "Raid Night",
        "start_time": START,
        "end_time": START + timedelta(hours=2),
    }
    data.update(overrides)
    return EventInfo(**data)


def make_signups(count: int, **overrides) -> list[Signup]:
    signups = []
    for i in range(count):
        data = {
            "id": i + 1,
            "event_id": 42,
            "discord_id": str(1000 + i),
            "username": f"member{i}",
        }
        data.update(overrides)
        signups.append(Signup(**data))
    return signups


def make_client(channel: MagicMock | None = None) -> MagicMock:
    """A bot client whose cache holds ``channel``; edits are recorded on it."""
    client = MagicMock(spec=discord.Client)
    client.get_channel.return_value = channel
    client.fetch_channel = AsyncMock(return_value=channel)
    return client


def make_channel() -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    message = MagicMock()
    message.edit = AsyncMock()
    channel.get_partial_message.return_value = message
    return channel


def edited(channel: MagicMock) -> dict:
    return channel.get_partial_message.return_value.edit.call_args.kwargs


@pytest.fixture
def roster() -> AsyncMock:
    roster = AsyncMock()
    roster.get_roster.return_value = RosterSnapshot(event_id=42, signups=[], count=0)
    roster.get_role_counts.return_value = {}
    return roster


@pytest.fixture
def identity() -> AsyncMock:
    identity = AsyncMock()
    identity.get_event.return_value = make_event(max_attendees=30)
    identity.get_game.return_value = None
    return identity


@pytest.fixture
def cards() -> AsyncMock:
    cards = AsyncMock()
    cards.find_card.return_value = PostedCard(
        event_id=42, guild_id=GUILD_ID, channel_id=777, message_id=888
    )
    return cards


@pytest.fixture
def channel() -> MagicMock:
    return make_channel()


@pytest.fixture
def sync(roster, identity, cards, channel) -> RosterSynchronizer:
    return RosterSynchronizer(
        make_client(channel),
        roster,
        identity,
        cards,
        guild_id=GUILD_ID,
        context=CardContext(community_name="Night Owls"),
    )


class TestParticipantFromSignup:
    def test_carries_character_class(self) -> None:
        signup = Signup(
            id=1,
            event_id=42,
            discord_id="99",
            username="raider",
            role="healer",
            character=Character(
                id="c1", user_id=7, game_id="g", name="Jaina", class_name="Priest"
            ),
        )
        participant = participant_from_signup(signup)
        assert participant.label == "<@99>"
        assert participant.role == "healer"
        assert participant.class_name == "Priest"

    def test_falls_back_to_username(self) -> None:
        participant = participant_from_signup(Signup(id=1, event_id=42, username="raider"))
        assert participant.label == "raider"


class TestBuildView:
    async def test_missing_event(self, sync, identity) -> None:
        identity.get_event.return_value = None
        assert await sync.build_view(42) is None

    async def test_inactive_signups_not_counted(self, sync, roster) -> None:
        signups = make_signups(3)
        signups.append(Signup(id=10, event_id=42, username="gone", status="declined"))
        signups.append(Signup(id=11, event_id=42, username="flake", status="roached_out"))
        roster.get_roster.return_value = RosterSnapshot(event_id=42, signups=signups, count=5)

        view = await sync.build_view(42)
        assert view.signup_count == 3
        assert [p.username for p in view.participants] == ["member0", "member1", "member2"]

    async def test_tentative_still_counts(self, sync, roster) -> None:
        signups = make_signups(2, status="tentative")
        roster.get_roster.return_value = RosterSnapshot(event_id=42, signups=signups, count=2)
        view = await sync.build_view(42)
        assert view.signup_count == 2

    async def test_game_details(self, sync, identity) -> None:
        identity.get_event.return_value = make_event(game_id="game-1")
        identity.get_game.return_value = GameInfo(
            id="game-1", name="World of Warcraft", cover_url="https://img.example/wow.png"
        )
        view = await sync.build_view(42)
        assert view.game_name == "World of Warcraft"
        assert view.game_cover_url == "https://img.example/wow.png"

    async def test_role_counts_passed_through(self, sync, roster, identity) -> None:
        identity.get_event.return_value = make_event(
            slot_config=SlotConfig(type="mmo", tank=2, healer=4, dps=14)
        )
        roster.get_role_counts.return_value = {"tank": 1, "dps": 3}
        view = await sync.build_view(42)
        assert view.role_counts == {"tank": 1, "dps": 3}


class TestDisplayCap:
    async def test_exactly_at_cap_has_no_suffix(self, sync, roster, channel) -> None:
        roster.get_roster.return_value = RosterSnapshot(
            event_id=42, signups=make_signups(25), count=25
        )
        await sync.refresh_card(42)
        description = edited(channel)["embed"].description
        assert "more" not in description
        assert "<@1024>" in description

    async def test_one_over_cap(self, sync, roster, channel) -> None:
        roster.get_roster.return_value = RosterSnapshot(
            event_id=42, signups=make_signups(26), count=26
        )
        await sync.refresh_card(42)
        description = edited(channel)["embed"].description
        assert "+ 1 more" in description
        assert "<@1025>" not in description
        assert "ROSTER: 26/30" in description

    async def test_custom_cap(self, roster, identity, cards, channel) -> None:
        sync = RosterSynchronizer(
            make_client(channel),
            roster,
            identity,
            cards,
            guild_id=GUILD_ID,
            context=CardContext(),
            display_cap=5,
        )
        roster.get_roster.return_value = RosterSnapshot(
            event_id=42, signups=make_signups(8), count=8
        )
        view = await sync.build_view(42)
        assert len(view.participants) == 5
        assert view.overflow == 3


class TestRefreshCard:
    async def test_edits_posted_message(self, sync, cards, channel) -> None:
        await sync.refresh_card(42)

        cards.find_card.assert_awaited_once_with(42, GUILD_ID)
        channel.get_partial_message.assert_called_once_with(888)
        kwargs = edited(channel)
        assert kwargs["embed"].title == "\U0001f4c5 Raid Night"
        assert kwargs["embed"].footer.text == "Night Owls"
        assert isinstance(kwargs["view"], discord.ui.View)

    async def test_no_card_posted(self, roster, identity, cards) -> None:
        cards.find_card.return_value = None
        client = make_client(make_channel())
        sync = RosterSynchronizer(
            client, roster, identity, cards, guild_id=GUILD_ID, context=CardContext()
        )
        await sync.refresh_card(42)
        client.get_channel.assert_not_called()
        roster.get_roster.assert_not_awaited()

    async def test_no_guild_configured(self, roster, identity, cards) -> None:
        client = make_client(make_channel())
        sync = RosterSynchronizer(
            client, roster, identity, cards, guild_id=None, context=CardContext()
        )
        await sync.refresh_card(42)
        cards.find_card.assert_not_awaited()

    async def test_fetches_uncached_channel(self, roster, identity, cards) -> None:
        channel = make_channel()
        client = make_client(None)
        client.fetch_channel.return_value = channel
        sync = RosterSynchronizer(
            client, roster, identity, cards, guild_id=GUILD_ID, context=CardContext()
        )
        await sync.refresh_card(42)
        client.fetch_channel.assert_awaited_once_with(777)
        channel.get_partial_message.return_value.edit.assert_awaited_once()

    async def test_non_text_channel_skipped(
        self, roster, identity, cards, caplog: pytest.LogCaptureFixture
    ) -> None:
        client = make_client(MagicMock(spec=discord.VoiceChannel))
        sync = RosterSynchronizer(
            client, roster, identity, cards, guild_id=GUILD_ID, context=CardContext()
        )
        await sync.refresh_card(42)
        assert "card_refresh_channel_unavailable event=42 channel=777" in caplog.text

    async def test_event_deleted_since_posting(
        self, sync, identity, channel, caplog: pytest.LogCaptureFixture
    ) -> None:
        identity.get_event.return_value = None
        await sync.refresh_card(42)
        channel.get_partial_message.assert_not_called()
        assert "card_refresh_event_missing event=42" in caplog.text

    async def test_failures_logged_not_raised(
        self, sync, channel, caplog: pytest.LogCaptureFixture
    ) -> None:
        channel.get_partial_message.return_value.edit.side_effect = discord.Forbidden(
            MagicMock(status=403, reason="Forbidden"),
            {"code": 50013, "message": "Missing Permissions"},
        )
        await sync.refresh_card(42)
        assert "card_refresh_failed event=42" in caplog.text

    async def test_storage_failure_logged_not_raised(
        self, sync, roster, caplog: pytest.LogCaptureFixture
    ) -> None:
        roster.get_roster.side_effect = RuntimeError("database is locked")
        await sync.refresh_card(42)
        assert "card_refresh_failed event=42" in caplog.text

    async def test_closed_card_loses_buttons(self, sync, cards, channel) -> None:
        cards.find_card.return_value = PostedCard(
            event_id=42,
            guild_id=GUILD_ID,
            channel_id=777,
            message_id=888,
            embed_state="completed",
        )
        await sync.refresh_card(42)
        assert edited(channel)["view"] is None
