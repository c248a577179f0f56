"""Tests for ocrmatch.relay module."""

import asyncio
import json

from ocrmatch.relay import ConnectionRegistry, format_sse


class TestFormatSse:
    """Tests for event-stream framing."""

    def test_json_data(self):
        assert format_sse({'ok': True}) == 'data: {"ok":true}\n\n'

    def test_named_event(self):
        assert format_sse({'n': 1}, event='match') == 'event: match\ndata: {"n":1}\n\n'

    def test_string_literal_stays_json(self):
        assert format_sse('abc') == 'data: "abc"\n\n'

    def test_newlines_stay_on_one_data_line(self):
        assert format_sse('a\nb') == 'data: "a\\nb"\n\n'

    def test_round_trips_payload(self):
        payload = {'raw_text': ['K1LLS', 'SHAD0W']}
        frame = format_sse(payload)
        assert json.loads(frame[len('data: '):].strip()) == payload


class TestConnectionRegistry:
    """Tests for the client registry."""

    def test_connect_disconnect(self):
        registry = ConnectionRegistry()
        conn = registry.connect()
        assert len(registry) == 1
        assert conn in registry
        registry.disconnect(conn)
        assert len(registry) == 0
        assert conn not in registry

    def test_disconnect_twice(self):
        registry = ConnectionRegistry()
        conn = registry.connect()
        registry.disconnect(conn)
        registry.disconnect(conn)
        assert len(registry) == 0

    def test_broadcast_reaches_all(self):
        async def scenario():
            registry = ConnectionRegistry()
            a, b = registry.connect(), registry.connect()
            assert registry.broadcast({'n': 1}) == 2
            return await a.get(), await b.get()

        assert asyncio.run(scenario()) == ({'n': 1}, {'n': 1})

    def test_broadcast_without_clients(self):
        assert ConnectionRegistry().broadcast('x') == 0

    def test_disconnected_client_gets_nothing(self):
        registry = ConnectionRegistry()
        conn = registry.connect()
        registry.disconnect(conn)
        registry.broadcast('x')
        assert conn.queue.empty()

    def test_slow_client_drops_oldest(self):
        async def scenario():
            registry = ConnectionRegistry(max_queue=2)
            conn = registry.connect()
            for n in range(3):
                registry.broadcast(n)
            return [await conn.get(), await conn.get()], conn.dropped

        assert asyncio.run(scenario()) == ([1, 2], 1)
