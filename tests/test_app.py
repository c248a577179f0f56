"""Tests for ocrmatch.app module."""

import asyncio
import json
from contextlib import suppress

import pytest
from fastapi.testclient import TestClient

from ocrmatch import Player, Team
from ocrmatch.app import _refresh_periodically, create_app
from ocrmatch.config import MatcherConfig
from ocrmatch.index import RosterIndexHolder
from ocrmatch.reader import parse_roster


class _Loader:
    """Roster loader whose result can be swapped or made to fail."""

    def __init__(self, teams):
        self.teams = teams
        self.error = None
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.teams


@pytest.fixture
def loader(roster_teams):
    return _Loader(roster_teams)


@pytest.fixture
def client(loader):
    app = create_app(MatcherConfig(), roster_loader=loader)
    with TestClient(app) as client:
        yield client


class TestStartup:
    """Tests for roster loading at startup."""

    def test_roster_loaded(self, client, loader):
        assert loader.calls == 1
        assert client.get('/health').json() == {'status': 'ok', 'entries': 4, 'clients': 0}

    def test_loader_failure_degrades_to_empty(self, loader):
        loader.error = ValueError('kaputt')
        with TestClient(create_app(roster_loader=loader)) as client:
            assert client.get('/health').json()['entries'] == 0

    def test_without_source(self):
        with TestClient(create_app()) as client:
            assert client.get('/health').json()['entries'] == 0
            assert client.post('/api/roster/refresh').status_code == 409

    def test_periodic_refresh_stops_on_shutdown(self, loader):
        config = MatcherConfig(refresh_interval=0.01)
        with TestClient(create_app(config, roster_loader=loader)) as client:
            assert client.get('/health').status_code == 200
        assert loader.calls >= 1

    def test_shared_holder(self, loader):
        holder = RosterIndexHolder()
        with TestClient(create_app(holder=holder, roster_loader=loader)):
            assert len(holder.current) == 4


class TestTeams:
    """Tests for the roster snapshot endpoint."""

    def test_snapshot(self, client):
        teams = client.get('/api/teams').json()
        assert [t['teamName'] for t in teams] == ['Red Rhinos', 'Night Owls', 'Ghost Squad']
        assert teams[1]['players'][0]['playerName'] == 'Shadow'


class TestRefresh:
    """Tests for roster refresh."""

    def test_refresh_publishes_new_roster(self, client, loader):
        loader.teams = [Team(id='x', name='X', image='x.png', players=[
            Player(id='p', name='Nightfall', image='n.png'),
        ])]
        response = client.post('/api/roster/refresh')
        assert response.json() == {'ok': True, 'entries': 1, 'teams': 1}
        assert client.get('/health').json()['entries'] == 1

    def test_failure_keeps_old_index(self, client, loader):
        loader.error = OSError('store unreachable')
        response = client.post('/api/roster/refresh')
        assert response.status_code == 502
        assert client.get('/health').json()['entries'] == 4


class TestOcrPush:
    """Tests for the OCR push endpoint."""

    def test_push(self, client):
        response = client.post('/api/ocr-stream', json={'raw_text': ['SHAD0W']})
        assert response.status_code == 200
        assert response.json() == {'ok': True, 'clients': 0}

    def test_push_reaches_registered_clients(self, client):
        registry = client.app.state.registry
        conn = registry.connect()
        try:
            response = client.post('/api/ocr-stream', json={'raw_text': ['x']})
            assert response.json()['clients'] == 1
            assert conn.queue.get_nowait() == {'raw_text': ['x']}
        finally:
            registry.disconnect(conn)

    def test_invalid_body(self, client):
        response = client.post(
            '/api/ocr-stream', content=b'not json',
            headers={'Content-Type': 'application/json'},
        )
        assert response.status_code == 400


class TestOverlayPage:
    """Tests for the overlay HTML page."""

    def test_renders_default_layout(self, client):
        response = client.get('/overlay')
        assert response.status_code == 200
        assert 'text/html' in response.headers['content-type']
        assert 'top: 897px' in response.text
        assert '/api/overlay/stream' in response.text


def _bad_roster():
    """Roster store answer whose players field is not a list."""
    return parse_roster([{'teamName': 'A', 'players': 5}])


class TestInvalidRoster:
    """Tests for structurally invalid rosters from the store."""

    def test_startup_survives(self):
        with TestClient(create_app(roster_loader=_bad_roster)) as client:
            assert client.get('/health').json()['entries'] == 0

    def test_refresh_reports_bad_gateway(self, roster_teams):
        calls = []

        def loader():
            calls.append(1)
            return roster_teams if len(calls) == 1 else _bad_roster()

        with TestClient(create_app(roster_loader=loader)) as client:
            assert client.post('/api/roster/refresh').status_code == 502
            assert client.get('/health').json()['entries'] == 4

    def test_periodic_refresh_keeps_running(self):
        calls = []

        def loader():
            calls.append(1)
            return _bad_roster()

        async def scenario():
            task = asyncio.create_task(
                _refresh_periodically(RosterIndexHolder(), loader, 0.01)
            )
            await asyncio.sleep(0.2)
            alive = not task.done()
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            return alive

        assert asyncio.run(scenario())
        assert len(calls) > 1


class _ConnectedRequest:
    """Stand-in for a client that never disconnects."""

    async def is_disconnected(self):
        return False


def _endpoint(app, path):
    return next(
        r.endpoint for r in app.routes
        if getattr(r, 'path', None) == path and 'GET' in (getattr(r, 'methods', None) or ())
    )


async def _open_stream(app, path):
    """Open a stream and wait until its client is registered."""
    registry = app.state.registry
    before = len(registry)
    response = await _endpoint(app, path)(_ConnectedRequest())
    stream = response.body_iterator
    first = asyncio.ensure_future(stream.__anext__())
    for _ in range(100):
        if len(registry) > before:
            break
        await asyncio.sleep(0)
    return stream, first


def _sse_data(frame: str) -> dict:
    data_line = next(l for l in frame.splitlines() if l.startswith('data: '))
    return json.loads(data_line[len('data: '):])


class TestStreams:
    """Tests for the raw relay and the per-session match stream."""

    @pytest.fixture
    def stream_app(self, holder):
        return create_app(MatcherConfig(), holder=holder)

    def test_overlay_stream_emits_match(self, stream_app):
        async def scenario():
            stream, first = await _open_stream(stream_app, '/api/overlay/stream')
            registry = stream_app.state.registry
            registry.broadcast('not an event')
            registry.broadcast({'raw_text': ['SHAD0W'], 'ui_position': {'PlayerImgTop': 900}})
            frame = await asyncio.wait_for(first, timeout=5)
            await stream.aclose()
            return frame

        frame = asyncio.run(scenario())
        assert frame.startswith('event: match\n')
        data = _sse_data(frame)
        assert data['match']['playerName'] == 'Shadow'
        assert data['match']['teamName'] == 'Night Owls'
        assert data['layout']['PlayerImgTop'] == 900

    def test_each_connection_starts_without_match(self, stream_app):
        async def scenario():
            registry = stream_app.state.registry
            stream_a, first_a = await _open_stream(stream_app, '/api/overlay/stream')
            registry.broadcast({'raw_text': ['shadow']})
            await asyncio.wait_for(first_a, timeout=5)
            await stream_a.aclose()

            stream_b, first_b = await _open_stream(stream_app, '/api/overlay/stream')
            registry.broadcast({'raw_text': ['zzz']})
            frame = await asyncio.wait_for(first_b, timeout=5)
            await stream_b.aclose()
            return frame

        assert _sse_data(asyncio.run(scenario()))['match'] is None

    def test_raw_stream_relays_json(self, stream_app):
        async def scenario():
            stream, first = await _open_stream(stream_app, '/api/ocr-stream')
            stream_app.state.registry.broadcast('abc')
            frame = await asyncio.wait_for(first, timeout=5)
            await stream.aclose()
            return frame

        assert asyncio.run(scenario()) == 'data: "abc"\n\n'
