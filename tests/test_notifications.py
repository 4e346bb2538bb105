"""
Tests for the live connection notification bus.
"""
import asyncio

from restaurant_bot.notifications import NotificationBus


class Recorder:
    def __init__(self):
        self.frames = []

    async def __call__(self, frame):
        self.frames.append(frame)


async def broken_send(frame):
    raise RuntimeError("socket closed")


class TestSend:

    def test_send_message_frame(self):
        async def scenario():
            bus = NotificationBus()
            recorder = Recorder()
            bus.register("c1", recorder, "tok")
            delivered = await bus.send_message("c1", "hello")
            return delivered, recorder.frames

        delivered, frames = asyncio.run(scenario())
        assert delivered is True
        assert frames == [{"event": "bot-message", "data": "hello"}]

    def test_send_redirect_frame(self):
        async def scenario():
            bus = NotificationBus()
            recorder = Recorder()
            bus.register("c1", recorder, "tok")
            await bus.send_redirect("c1", "https://pay.example/x")
            return recorder.frames

        assert asyncio.run(scenario()) == [{"event": "redirect", "data": "https://pay.example/x"}]

    def test_unknown_connection_is_dropped(self):
        bus = NotificationBus()
        assert asyncio.run(bus.send_message("missing", "hello")) is False

    def test_failed_write_is_not_raised(self):
        async def scenario():
            bus = NotificationBus()
            bus.register("c1", broken_send, "tok")
            return await bus.send_message("c1", "hello")

        assert asyncio.run(scenario()) is False

    def test_unregister(self):
        async def scenario():
            bus = NotificationBus()
            recorder = Recorder()
            bus.register("c1", recorder, "tok")
            bus.unregister("c1")
            bus.unregister("c1")
            return await bus.send_message("c1", "hello"), recorder.frames

        assert asyncio.run(scenario()) == (False, [])


class TestBroadcastClear:

    def test_only_matching_connections_are_cleared(self):
        async def scenario():
            bus = NotificationBus()
            a, b, other = Recorder(), Recorder(), Recorder()
            cleared = []

            async def on_clear(token):
                cleared.append(token)

            bus.register("a", a, "tok-1", on_clear=on_clear)
            bus.register("b", b, "tok-1", on_clear=on_clear)
            bus.register("o", other, "tok-2", on_clear=on_clear)

            count = bus.broadcast_clear("tok-1")
            await bus.drain()
            return count, a.frames, b.frames, other.frames, cleared

        count, a, b, other, cleared = asyncio.run(scenario())
        assert count == 2
        assert a == [{"event": "clear-session", "data": "tok-1"}]
        assert b == [{"event": "clear-session", "data": "tok-1"}]
        assert other == []
        assert cleared == ["tok-1", "tok-1"]

    def test_rebound_connection_follows_new_token(self):
        async def scenario():
            bus = NotificationBus()
            recorder = Recorder()
            bus.register("c1", recorder, "old")
            bus.bind("c1", "new")
            stale = bus.broadcast_clear("old")
            fresh = bus.broadcast_clear("new")
            await bus.drain()
            return stale, fresh, recorder.frames

        stale, fresh, frames = asyncio.run(scenario())
        assert stale == 0
        assert fresh == 1
        assert frames == [{"event": "clear-session", "data": "new"}]

    def test_failing_clear_handler_does_not_escape(self):
        async def scenario():
            bus = NotificationBus()

            async def on_clear(token):
                raise RuntimeError("boom")

            bus.register("c1", Recorder(), "tok", on_clear=on_clear)
            bus.broadcast_clear("tok")
            await bus.drain()
            return True

        assert asyncio.run(scenario()) is True

    def test_no_listeners(self):
        async def scenario():
            bus = NotificationBus()
            count = bus.broadcast_clear("nobody")
            await bus.drain()
            return count

        assert asyncio.run(scenario()) == 0
