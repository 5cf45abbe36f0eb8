import asyncio
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytz
from freezegun import freeze_time

import lib.shared.confirmation as confirmation
import lib.shared.errors as errors
import lib.shared.participant as participant
import lib.shared.queuestore as queuestore
import lib.shared.timewindow as timewindow
from lib.shared.messagetracker import MessageTracker
import plugins.shared.avalon.avalonBot as avalonBot
import queueEvent


def fake_bot(fetch_user=None):
    coordinator = SimpleNamespace(RecordResponse=AsyncMock(return_value=True))
    return SimpleNamespace(
        gameName="ProAvalon",
        channelMessages=MessageTracker(),
        coordinator=coordinator,
        get_user=lambda userId: None,
        fetch_user=fetch_user if fetch_user != None else AsyncMock(),
    )


def not_found():
    return discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown User")


@pytest.mark.parametrize("customId, expected", [
    ("confirm-game-7p-123456", ("confirm-game", "7p", "123456")),
    ("decline-game-10p-42", ("decline-game", "10p", "42")),
    ("confirm-game-7p", ("confirm-game", "7p", None)),
    ("join-now-5p", ("join-now", "5p", None)),
    ("specify-time-6p", ("specify-time", "6p", None)),
    ("leave-queue-8p", ("leave-queue", "8p", None)),
    ("join-queue-9p", ("join-queue", "9p", None)),
    ("player-count", ("player-count", None, None)),
    ("something-else", (None, None, None)),
])
def test_parse_component_id(customId, expected):
    assert avalonBot.parse_component_id(customId) == expected


def test_format_duration():
    assert avalonBot.format_duration(120) == "2 minutes"
    assert avalonBot.format_duration(60) == "1 minute"
    assert avalonBot.format_duration(45) == "45 seconds"


def test_mention():
    assert avalonBot.mention(participant.Participant("123", "Alice")) == "<@123>"
    bot = participant.CreateSyntheticParticipants(1)[0]
    assert avalonBot.mention(bot) == "DebugBot1 (Bot)"


@pytest.mark.asyncio
async def test_join_announcement_has_counts_and_button():
    event = queueEvent.PlayerJoinedEvent(participant.Participant("1", "Alice"), "g", "5p", 3, 5)
    kwargs = avalonBot.render_event(event)
    assert "Alice" in kwargs["content"]
    assert "3/5" in kwargs["content"]
    assert "2" in kwargs["content"]
    button = kwargs["view"].children[0]
    assert button.custom_id == "join-queue-5p"
    assert button.label == "Join 5p Queue"


def test_leave_and_expired_announcements():
    cl = participant.Participant("1", "Alice")
    left = avalonBot.render_event(queueEvent.PlayerLeftEvent(cl, "g", "6p", 2, 6))
    expired = avalonBot.render_event(queueEvent.PlayerExpiredEvent(cl, "g", "6p", 1, 6))
    assert "Alice" in left["content"] and "2/6" in left["content"]
    assert "Alice" in expired["content"] and "1/6" in expired["content"]


def test_round_opened_pings_only_real_players():
    players = [participant.Participant("11", "Alice")] + participant.CreateSyntheticParticipants(4)
    kwargs = avalonBot.render_event(queueEvent.RoundOpenedEvent(players, "g", "5p", 120))
    assert kwargs["content"] == "<@11>"
    assert "DebugBot1 (Bot)" in kwargs["embed"].description
    assert kwargs["embed"].title == "Game Ready: 5p ProAvalon"
    assert kwargs["embed"].footer.text == "You have 2 minutes to confirm"


def test_session_outcomes():
    players = participant.CreateSyntheticParticipants(5)
    ready = avalonBot.render_event(queueEvent.SessionReadyEvent(players, "g", "5p"), "Avalon")
    assert ready["content"] is None
    assert ready["embed"].title == "5p Avalon Game Confirmed!"

    cancelled = avalonBot.render_event(queueEvent.SessionCancelledEvent("g", "5p", 3, 1, 1))
    assert "3 confirmed, 1 declined, 1 did not respond" in cancelled["embed"].description


def test_status_embed_lists_every_pool():
    store = queuestore.QueueStore([6, 5])
    parser = timewindow.TimeWindowParser()
    store.Join("g", "5p", participant.Participant("1", "Alice"))
    store.Join("g", "5p", participant.Participant("2", "Bob", window=timewindow.AvailabilityWindow("14:00", "20:30")))
    store.Join("g", "5p", participant.Participant("3", "Eve", window=timewindow.AvailabilityWindow("14:00", "01:30", "America/New_York")))

    with freeze_time("2024-01-10 14:05:00"):
        embed = avalonBot.build_status_embed(store, parser, "g")

    assert "2024-01-10 14:05 (UTC+0)" in embed.description
    assert [f.name for f in embed.fields] == ["6p (0/6)", "5p (3/5)"]
    assert embed.fields[0].value == "No players"
    assert embed.fields[1].value == "Alice, Bob (Available until 20:30), Eve (Available until 01:30 America/New_York)"


def test_status_embed_shows_pending_round():
    store = queuestore.QueueStore([5])
    players = participant.CreateSyntheticParticipants(5)
    store.Fill("g", "5p", players)
    clock = lambda: 1000.0
    round = confirmation.ConfirmationRound("g", "5p", 5, players, None, "Guild", 90, clock)
    round.MarkResponse("debug-bot-0", True)
    store.SetRound("g", "5p", round)

    embed = avalonBot.build_status_embed(store, timewindow.TimeWindowParser(), "g")

    assert embed.fields[0].value.endswith("Waiting for confirmations: 1/5 responded, 01:30 left")


@pytest.mark.asyncio
async def test_sink_posts_and_tracks_channel_messages():
    bot = fake_bot()
    sink = avalonBot.DiscordNotificationSink(bot)
    channel = SimpleNamespace(id=77, send=AsyncMock(return_value="message"))
    event = queueEvent.PlayerLeftEvent(participant.Participant("1", "Alice"), "g", "5p", 0, 5)

    assert await sink.SendToChannel(channel, event) == "message"
    assert "Alice" in channel.send.await_args.kwargs["content"]
    assert bot.channelMessages.GetTracked((77, "5p")) == ["message"]


@pytest.mark.asyncio
async def test_sink_dm_sends_confirm_buttons_for_the_community():
    user = SimpleNamespace(send=AsyncMock())
    bot = fake_bot(fetch_user=AsyncMock(return_value=user))
    sink = avalonBot.DiscordNotificationSink(bot)

    await sink.RequestConfirmation(participant.Participant("123", "Alice"), "987", "My Server", "7p")

    bot.fetch_user.assert_awaited_once_with(123)
    kwargs = user.send.await_args.kwargs
    assert '"My Server"' in kwargs["content"]
    ids = [item.custom_id for item in kwargs["view"].children]
    assert ids == ["confirm-game-7p-987", "decline-game-7p-987"]


@pytest.mark.asyncio
async def test_sink_unreachable_player_raises_delivery_failure():
    bot = fake_bot(fetch_user=AsyncMock(side_effect=not_found()))
    sink = avalonBot.DiscordNotificationSink(bot)
    with pytest.raises(errors.DeliveryFailure):
        await sink.RequestConfirmation(participant.Participant("123", "Alice"), "987", "My Server", "7p")


@pytest.mark.asyncio
async def test_sink_auto_confirms_synthetic_players():
    bot = fake_bot()
    sink = avalonBot.DiscordNotificationSink(bot)
    cl = participant.CreateSyntheticParticipants(1)[0]

    await sink.RequestConfirmation(cl, "987", "My Server", "5p")
    await asyncio.sleep(0)

    bot.coordinator.RecordResponse.assert_awaited_once_with("987", "5p", "debug-bot-0", True)
    bot.fetch_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_sink_removal_notice_is_best_effort():
    bot = fake_bot(fetch_user=AsyncMock(side_effect=not_found()))
    sink = avalonBot.DiscordNotificationSink(bot)
    await sink.NotifyRemoval(participant.Participant("123", "Alice"), "My Server", "5p",
                             queueEvent.REMOVAL_REASON_NO_RESPONSE)


@pytest.mark.asyncio
async def test_sink_removal_notice_skips_synthetic_players():
    bot = fake_bot()
    sink = avalonBot.DiscordNotificationSink(bot)
    await sink.NotifyRemoval(participant.CreateSyntheticParticipants(1)[0], "My Server", "5p",
                             queueEvent.REMOVAL_REASON_NO_RESPONSE)
    bot.fetch_user.assert_not_awaited()


def test_env_template_created_when_missing(tmp_path, monkeypatch):
    # set first so the values load_dotenv writes are undone afterwards
    for var in ["DISCORD_TOKEN", "CLIENT_ID", "GUILD_ID"]:
        monkeypatch.setenv(var, "x")
        monkeypatch.delenv(var)
    envFile = tmp_path / ".env"

    avalonBot.check_and_create_env(str(envFile))

    assert "DISCORD_TOKEN=" in envFile.read_text()
    assert avalonBot.read_env() == (None, None, None)


def test_env_values_are_read(monkeypatch):
    monkeypatch.setenv("DISCORD_TOKEN", "abc")
    monkeypatch.setenv("CLIENT_ID", "111")
    monkeypatch.setenv("GUILD_ID", "")
    assert avalonBot.read_env() == ("abc", 111, None)


def join_host(reference):
    real = timewindow.TimeWindowParser()
    parser = SimpleNamespace(
        Parse=lambda text: real.Parse(text, reference),
        IsExpired=lambda end: real.IsExpired(end, reference),
        GetDefaultTimezone=real.GetDefaultTimezone,
        GetCurrentDateTimeWithTZ=lambda: real.GetCurrentDateTimeWithTZ(reference),
    )
    return SimpleNamespace(
        parser=parser,
        store=queuestore.QueueStore([5]),
        SendTrackedEphemeral=AsyncMock(),
        Announce=AsyncMock(),
        coordinator=SimpleNamespace(CheckQueueStatus=AsyncMock()),
    )


def fake_interaction():
    return SimpleNamespace(
        guild_id=1,
        guild=SimpleNamespace(name="Guild"),
        user=SimpleNamespace(id=42, name="Alice"),
        channel="chan",
    )


@pytest.mark.asyncio
async def test_join_with_window_already_over_is_rejected():
    host = join_host(datetime(2024, 1, 10, 13, 5, tzinfo=pytz.utc))

    with pytest.raises(errors.WindowExpired):
        await avalonBot.AvalonBot.JoinQueue(host, fake_interaction(), "5p", "now-13:00")

    assert host.store.GetPool("1", "5p").GetMemberCount() == 0
    host.SendTrackedEphemeral.assert_not_awaited()
    host.coordinator.CheckQueueStatus.assert_not_awaited()


@pytest.mark.asyncio
async def test_join_with_window_announces_and_checks_pool():
    host = join_host(datetime(2024, 1, 10, 13, 5, tzinfo=pytz.utc))

    await avalonBot.AvalonBot.JoinQueue(host, fake_interaction(), "5p", "now-8:30pm")

    member = host.store.GetPool("1", "5p").GetMember("42")
    assert member.GetWindow().end == "20:30"
    assert "13:05 to 20:30" in host.SendTrackedEphemeral.await_args.args[1]
    event = host.Announce.await_args.args[1]
    assert (event.current, event.required) == (1, 5)
    host.coordinator.CheckQueueStatus.assert_awaited_once_with("1", "5p", "chan", "Guild")


@pytest.mark.asyncio
async def test_sink_tells_silent_player_they_were_removed():
    user = SimpleNamespace(send=AsyncMock())
    bot = fake_bot(fetch_user=AsyncMock(return_value=user))
    sink = avalonBot.DiscordNotificationSink(bot)

    await sink.NotifyRemoval(participant.Participant("123", "Alice"), "My Server", "5p",
                             queueEvent.REMOVAL_REASON_NO_RESPONSE)

    assert "did not respond to the 5p ProAvalon game" in user.send.await_args.args[0]
