"""
Change notifier tests (local dispatch, no Redis)
"""
import pytest

from fyndak.infrastructure.notifier import ChangeNotifier, validate_channel


class FakeWebSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.fixture
def local_notifier():
    return ChangeNotifier()


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_callback_receives_matching_table(self, local_notifier):
        received = []
        local_notifier.subscribe("bids", received.append)

        await local_notifier.publish("bids", "INSERT", new={"id": "b1"})
        await local_notifier.publish("products", "UPDATE", new={"id": "p1"})

        assert received == [{"table": "bids", "event": "INSERT", "new": {"id": "b1"}, "old": None}]

    @pytest.mark.asyncio
    async def test_event_filter(self, local_notifier):
        received = []
        local_notifier.subscribe("products", received.append, event="DELETE")

        await local_notifier.publish("products", "UPDATE", new={"id": "p1"})
        await local_notifier.publish("products", "DELETE", old={"id": "p1"})

        assert [m["event"] for m in received] == ["DELETE"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, local_notifier):
        received = []
        unsubscribe = local_notifier.subscribe("bids", received.append)

        unsubscribe()
        unsubscribe()
        await local_notifier.publish("bids", "INSERT", new={"id": "b1"})

        assert received == []
        assert local_notifier.get_stats()["subscriptions"] == 0

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, local_notifier):
        received = []

        async def on_change(message):
            received.append(message["event"])

        local_notifier.subscribe("bids", on_change)
        await local_notifier.publish("bids", "UPDATE", new={"id": "b1"})

        assert received == ["UPDATE"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_others(self, local_notifier):
        received = []

        def broken(message):
            raise RuntimeError("boom")

        local_notifier.subscribe("bids", broken)
        local_notifier.subscribe("bids", received.append)

        await local_notifier.publish("bids", "INSERT", new={"id": "b1"})

        assert len(received) == 1
        assert local_notifier.get_stats()["callback_errors"] == 1

    @pytest.mark.parametrize("table, event", [("users", "*"), ("bids", "TRUNCATE")])
    def test_unknown_channel(self, local_notifier, table, event):
        with pytest.raises(ValueError):
            local_notifier.subscribe(table, print, event=event)

        with pytest.raises(ValueError):
            validate_channel(table, event)


class TestWebSocketFanout:

    @pytest.mark.asyncio
    async def test_sends_to_matching_connections(self, local_notifier):
        all_events = FakeWebSocket()
        inserts_only = FakeWebSocket()
        await local_notifier.add_connection(all_events, "bids")
        await local_notifier.add_connection(inserts_only, "bids", "INSERT")

        await local_notifier.publish("bids", "UPDATE", new={"id": "b1"})

        assert all_events.accepted and inserts_only.accepted
        assert [m["event"] for m in all_events.sent] == ["UPDATE"]
        assert inserts_only.sent == []

    @pytest.mark.asyncio
    async def test_broken_connection_is_dropped(self, local_notifier):
        await local_notifier.add_connection(FakeWebSocket(fail=True), "products")

        await local_notifier.publish("products", "INSERT", new={"id": "p1"})

        assert local_notifier.get_connection_count("products") == 0

    @pytest.mark.asyncio
    async def test_stats(self, local_notifier):
        await local_notifier.add_connection(FakeWebSocket(), "products")
        await local_notifier.publish("products", "INSERT", new={"id": "p1"})

        stats = local_notifier.get_stats()
        assert stats["is_connected"] is False
        assert stats["messages_published"] == 1
        assert stats["total_connections"] == 1


class TestRedisUnavailable:

    @pytest.mark.asyncio
    async def test_connect_falls_back_to_local_dispatch(self):
        notifier = ChangeNotifier("redis://127.0.0.1:1/0")
        received = []
        notifier.subscribe("bids", received.append)

        await notifier.connect()
        await notifier.publish("bids", "INSERT", new={"id": "b1"})
        await notifier.disconnect()

        assert notifier.is_connected is False
        assert [m["event"] for m in received] == ["INSERT"]

    @pytest.mark.asyncio
    async def test_dead_listen_loop_falls_back_to_local_dispatch(self):
        class BrokenPubSub:
            async def listen(self):
                raise ConnectionError("connection reset")
                yield

        notifier = ChangeNotifier("redis://example")
        notifier.redis = object()
        notifier.pubsub = BrokenPubSub()

        await notifier._listen_loop()

        assert notifier.is_connected is False
        received = []
        notifier.subscribe("products", received.append)
        await notifier.publish("products", "UPDATE", new={"id": "p1"})
        assert len(received) == 1
