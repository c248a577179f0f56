"""FastAPI service: OCR push endpoint, event relay and overlay match stream."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, StreamingResponse
from jinja2 import Environment, FileSystemLoader

from ocrmatch import Team
from ocrmatch.config import MatcherConfig
from ocrmatch.engine import MatchEngine
from ocrmatch.events import DEFAULT_LAYOUT
from ocrmatch.index import RosterIndexHolder
from ocrmatch.reader import load_roster, teams_to_json
from ocrmatch.relay import ConnectionRegistry, format_sse

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'templates'

KEEPALIVE_SECONDS = 15.0

SSE_HEADERS = {
    'Cache-Control': 'no-cache',
    'Connection': 'keep-alive',
}

RosterLoader = Callable[[], list[Team]]


async def _reload_roster(holder: RosterIndexHolder, loader: RosterLoader) -> int:
    """Load the roster and publish a freshly built index.

    Loading and building both run in a worker thread; the engines keep
    reading the previous index until the new one is published.
    """
    def _load_and_build() -> int:
        teams = loader()
        return len(holder.rebuild(teams))

    return await asyncio.to_thread(_load_and_build)


async def _refresh_periodically(
    holder: RosterIndexHolder,
    loader: RosterLoader,
    interval: float,
) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await _reload_roster(holder, loader)
        except (OSError, ValueError, httpx.HTTPError) as exc:
            log.warning("Roster-Aktualisierung fehlgeschlagen, alter Index bleibt: %s", exc)


async def _stream_messages(
    request: Request,
    registry: ConnectionRegistry,
) -> AsyncIterator[Optional[object]]:
    """Yield relayed messages for one client; None marks a keepalive tick."""
    conn = registry.connect()
    try:
        while not await request.is_disconnected():
            try:
                yield await asyncio.wait_for(conn.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield None
    finally:
        registry.disconnect(conn)


def create_app(
    config: Optional[MatcherConfig] = None,
    holder: Optional[RosterIndexHolder] = None,
    roster_loader: Optional[RosterLoader] = None,
) -> FastAPI:
    """Build the overlay service.

    Args:
        config: Matcher configuration; defaults apply if omitted.
        holder: Index holder to share; a new empty one if omitted.
        roster_loader: Callable returning a roster snapshot. Defaults to
            loading from the configured URL or file; without either the
            service starts with an empty roster.

    Returns:
        The FastAPI application.
    """
    config = config or MatcherConfig()
    holder = holder or RosterIndexHolder()
    registry = ConnectionRegistry()

    if roster_loader is None and (config.roster_url or config.roster_path):
        def roster_loader() -> list[Team]:
            return load_roster(config)

    templates = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresh_task = None
        if roster_loader is not None:
            try:
                await _reload_roster(holder, roster_loader)
            except (OSError, ValueError, httpx.HTTPError) as exc:
                log.error("Roster konnte nicht geladen werden: %s", exc)
            if config.refresh_interval > 0:
                refresh_task = asyncio.create_task(
                    _refresh_periodically(holder, roster_loader, config.refresh_interval)
                )
        log.info("Overlay-Service gestartet")
        yield
        if refresh_task is not None:
            refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await refresh_task
        log.info("Overlay-Service beendet")

    app = FastAPI(
        title="OCR Overlay Matcher",
        description="Matches streamed OCR text against the tournament roster",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.holder = holder
    app.state.registry = registry

    @app.get("/health")
    async def health():
        return {
            'status': 'ok',
            'entries': len(holder.current),
            'clients': len(registry),
        }

    @app.get("/api/teams")
    async def get_teams():
        return teams_to_json(holder.teams)

    @app.post("/api/roster/refresh")
    async def refresh_roster():
        if roster_loader is None:
            raise HTTPException(status_code=409, detail="Keine Roster-Quelle konfiguriert")
        try:
            entries = await _reload_roster(holder, roster_loader)
        except (OSError, ValueError, httpx.HTTPError) as exc:
            log.warning("Roster-Aktualisierung fehlgeschlagen: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc))
        return {'ok': True, 'entries': entries, 'teams': len(holder.teams)}

    @app.post("/api/ocr-stream")
    async def push_ocr(request: Request):
        body = await request.body()
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            raise HTTPException(status_code=400, detail="Body ist kein JSON")
        clients = registry.broadcast(data)
        return {'ok': True, 'clients': clients}

    @app.get("/api/ocr-stream")
    async def ocr_stream(request: Request):
        async def events():
            async for message in _stream_messages(request, registry):
                if message is None:
                    yield ': keepalive\n\n'
                else:
                    yield format_sse(message)

        return StreamingResponse(
            events(), media_type='text/event-stream', headers=SSE_HEADERS,
        )

    @app.get("/api/overlay/stream")
    async def overlay_stream(request: Request):
        # One engine per session; its temporal state ends with the connection
        engine = MatchEngine.from_config(holder, config)

        async def events():
            async for message in _stream_messages(request, registry):
                if message is None:
                    yield ': keepalive\n\n'
                    continue
                accepted, decision = engine.feed(message)
                if not accepted:
                    continue
                yield format_sse({
                    'match': decision.to_payload() if decision else None,
                    'layout': engine.layout,
                }, event='match')

        return StreamingResponse(
            events(), media_type='text/event-stream', headers=SSE_HEADERS,
        )

    @app.get("/overlay", response_class=HTMLResponse)
    async def overlay_page():
        template = templates.get_template('overlay.html')
        return template.render(
            layout=DEFAULT_LAYOUT,
            stream_url='/api/overlay/stream',
        )

    return app
