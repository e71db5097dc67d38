"""Tests for the command facade."""

import asyncio

import pytest
from fakes import Recorder

from vr_sync_bridge.commands import CommandFacade
from vr_sync_bridge.event_bus import EventBus
from vr_sync_bridge.heartbeat import PendingTimer
from vr_sync_bridge.models import MEDIA_TYPES, CalibrateMessage, CommandMessage, TextMessage


class _StubConnection:
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.sent = []
        self.play_started_timer = PendingTimer(loop)

    def send(self, message) -> bool:
        self.sent.append(message)
        return True


def _facade(loop):
    bus = EventBus()
    connection = _StubConnection(loop)
    return CommandFacade(connection=connection, event_bus=bus), connection, bus


def _triggers(recorder: Recorder):
    return [
        e["values"]["playStartedTrigger"]
        for e in recorder.events
        if "playStartedTrigger" in e["values"]
    ]


def test_play_uses_label_for_every_index() -> None:
    async def _run() -> None:
        facade, connection, _bus = _facade(asyncio.get_running_loop())
        for index, media_type in enumerate(MEDIA_TYPES):
            facade.play_by_index(42, str(index), False, 0)
            command = connection.sent[-1]
            assert isinstance(command, CommandMessage)
            item = command.playlist[0]
            assert item.type == media_type.value
            assert item.identifier == "42"

    asyncio.run(_run())


def test_play_builds_single_item_playlist() -> None:
    async def _run() -> None:
        facade, connection, _bus = _facade(asyncio.get_running_loop())
        facade.play("intro", "CloudVideo", True, 1500)
        facade.stop()  # keep the loop clean

        wire = connection.sent[0].payload()
        assert wire["playlist"] == [{"type": "CloudVideo", "identifier": "intro", "playDelayMs": 1500}]
        assert wire["loop"] is True
        assert wire["deviceUIDs"] == ["all"]

    asyncio.run(_run())


def test_invalid_media_type_index_raises() -> None:
    async def _run() -> None:
        facade, connection, _bus = _facade(asyncio.get_running_loop())
        with pytest.raises(IndexError):
            facade.play_by_index("1", 4, False, 0)
        with pytest.raises(IndexError):
            facade.play_by_index("1", -1, False, 0)
        assert connection.sent == []

    asyncio.run(_run())


def test_zero_delay_fires_signal_immediately() -> None:
    async def _run() -> None:
        facade, _connection, bus = _facade(asyncio.get_running_loop())
        variables = Recorder(bus, "variables_updated")

        facade.play("1", "LocalVideo", False, 0)

        assert len(_triggers(variables)) == 1

    asyncio.run(_run())


def test_delayed_signal_fires_after_delay() -> None:
    async def _run() -> None:
        facade, connection, bus = _facade(asyncio.get_running_loop())
        variables = Recorder(bus, "variables_updated")

        facade.play("1", "LocalVideo", False, 30)
        assert _triggers(variables) == []
        assert connection.play_started_timer.pending

        await asyncio.sleep(0.08)
        assert len(_triggers(variables)) == 1

    asyncio.run(_run())


def test_stop_sends_empty_playlist_and_cancels_signal() -> None:
    async def _run() -> None:
        facade, connection, bus = _facade(asyncio.get_running_loop())
        variables = Recorder(bus, "variables_updated")

        facade.play("1", "CloudImage", True, 30)
        facade.stop()
        await asyncio.sleep(0.08)

        stop = connection.sent[-1]
        assert isinstance(stop, CommandMessage)
        assert stop.playlist == ()
        assert stop.loop is False
        assert _triggers(variables) == []

    asyncio.run(_run())


def test_second_play_replaces_pending_signal() -> None:
    async def _run() -> None:
        facade, _connection, bus = _facade(asyncio.get_running_loop())
        variables = Recorder(bus, "variables_updated")

        facade.play("1", "LocalVideo", False, 30)
        await asyncio.sleep(0.01)
        facade.play("2", "LocalVideo", False, 30)
        await asyncio.sleep(0.1)

        triggers = _triggers(variables)
        assert len(triggers) == 1

    asyncio.run(_run())


def test_each_signal_is_a_fresh_token() -> None:
    async def _run() -> None:
        facade, _connection, bus = _facade(asyncio.get_running_loop())
        variables = Recorder(bus, "variables_updated")

        facade.play("1", "LocalVideo", False, 0)
        facade.play("1", "LocalVideo", False, 0)

        first, second = _triggers(variables)
        assert first != second

    asyncio.run(_run())


def test_text_and_calibrate() -> None:
    async def _run() -> None:
        facade, connection, _bus = _facade(asyncio.get_running_loop())
        facade.send_text("Welcome")
        facade.calibrate()

        text, calibrate = connection.sent
        assert isinstance(text, TextMessage)
        assert text.text == "Welcome"
        assert text.length_ms == 5000
        assert text.device_uids == ("all",)
        assert isinstance(calibrate, CalibrateMessage)

    asyncio.run(_run())
