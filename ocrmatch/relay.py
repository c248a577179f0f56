"""Server-sent event relay between the OCR producer and overlay clients."""

import asyncio
import json
import logging
from typing import Any, Optional

log = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE = 100


def format_sse(data: Any, event: Optional[str] = None) -> str:
    """Frame a JSON-encoded message for a ``text/event-stream`` response."""
    data = json.dumps(data, separators=(',', ':'))
    lines = []
    if event:
        lines.append(f'event: {event}')
    lines.append(f'data: {data}')
    return '\n'.join(lines) + '\n\n'


class Connection:
    """One subscribed client with its own bounded message queue."""

    def __init__(self, conn_id: int, max_queue: int = DEFAULT_MAX_QUEUE):
        self.id = conn_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0

    def offer(self, message: Any) -> None:
        """Enqueue without blocking; a full queue loses its oldest message."""
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(message)

    async def get(self) -> Any:
        return await self.queue.get()


class ConnectionRegistry:
    """Tracks the currently connected stream clients.

    Clients are added when a stream opens and removed when it closes;
    ``broadcast`` fans a message out to every registered client.
    """

    def __init__(self, max_queue: int = DEFAULT_MAX_QUEUE):
        self._max_queue = max_queue
        self._connections: dict[int, Connection] = {}
        self._next_id = 1

    def connect(self) -> Connection:
        conn = Connection(self._next_id, self._max_queue)
        self._next_id += 1
        self._connections[conn.id] = conn
        log.info("Client %d verbunden (%d aktiv)", conn.id, len(self._connections))
        return conn

    def disconnect(self, conn: Connection) -> None:
        if self._connections.pop(conn.id, None) is not None:
            log.info(
                "Client %d getrennt (%d aktiv, %d verworfen)",
                conn.id, len(self._connections), conn.dropped,
            )

    def broadcast(self, message: Any) -> int:
        """Offer a message to every connected client.

        Returns:
            Number of clients the message was offered to.
        """
        for conn in list(self._connections.values()):
            conn.offer(message)
        return len(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: Connection) -> bool:
        return self._connections.get(conn.id) is conn
