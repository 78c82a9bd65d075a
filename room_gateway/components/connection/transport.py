"""
WebSocket transport wrapper.

Gives the rest of the gateway synchronous send/close/ping primitives over a
Starlette WebSocket. Frames are queued and written by a per-connection
writer task, so message handlers never suspend while they mutate room state
and fan out updates.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

from starlette.websockets import WebSocketState

from room_gateway.components.core.constants import WSCloseCode, WSConstants
from room_gateway.components.protocol.types import MessageType, create_message, encode_message, now_ms
from room_gateway.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class Transport(Protocol):
    """Outbound primitives a Participant needs from its connection."""

    @property
    def is_open(self) -> bool: ...

    def send_text(self, text: str) -> bool: ...

    def ping(self) -> bool: ...

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None: ...


def is_ws_connected(ws: "WebSocket") -> bool:
    """Check if the WebSocket is in connected state on both sides."""
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class WebSocketTransport:
    """
    Queue-backed transport for one accepted WebSocket.

    - send_text() enqueues and returns immediately
    - the writer task (run_writer) drains the queue in order
    - close() is immediate for callers: no further frames are accepted, and
      frames already queued are flushed before the close frame
    """

    def __init__(self, websocket: "WebSocket", connection_id: str, queue_size: int = 256) -> None:
        self._ws = websocket
        self._connection_id = connection_id
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self._closing = False
        self._closed = asyncio.Event()
        self._close_code: int = WSCloseCode.NORMAL
        self._close_reason = ""
        self._dropped = 0
        self._sent = 0

    @property
    def is_open(self) -> bool:
        return not self._closing and not self._closed.is_set()

    @property
    def close_code(self) -> int:
        return self._close_code

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def send_text(self, text: str) -> bool:
        """
        Queue a frame for delivery.

        Returns:
            False if the connection is closing or its queue is full.
        """
        if not self.is_open:
            return False
        try:
            self._queue.put_nowait(text)
        except asyncio.QueueFull:
            self._dropped += 1
            if self._dropped % WSConstants.DROP_LOG_INTERVAL == 1:
                logger.warning(
                    "Outbound queue full, dropping frame",
                    connection_id=self._connection_id,
                    dropped=self._dropped,
                )
            return False
        return True

    def ping(self) -> bool:
        """Queue a server heartbeat frame."""
        return self.send_text(encode_message(create_message(MessageType.PING, serverTime=now_ms())))

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        """Stop accepting frames and ask the writer to close after flushing."""
        if self._closing:
            return
        self._closing = True
        self._close_code = code
        self._close_reason = reason
        if self._queue.full():
            # Make room for the sentinel; the oldest frame is the least useful
            self._queue.get_nowait()
            self._dropped += 1
        self._queue.put_nowait(None)

    async def wait_closed(self) -> None:
        """Wait until the writer has finished (after close or a send failure)."""
        await self._closed.wait()

    async def run_writer(self) -> None:
        """Drain the outbound queue until close() or a transport failure."""
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                try:
                    await self._ws.send_text(frame)
                    self._sent += 1
                except (KeyboardInterrupt, SystemExit):
                    raise
                except Exception as e:
                    logger.debug(
                        "Send failed, stopping writer",
                        connection_id=self._connection_id,
                        error=type(e).__name__,
                    )
                    self._closing = True
                    return

            if is_ws_connected(self._ws):
                try:
                    await self._ws.close(code=self._close_code, reason=self._close_reason)
                except (ConnectionError, RuntimeError, OSError) as e:
                    logger.debug(
                        "Close failed",
                        connection_id=self._connection_id,
                        error=type(e).__name__,
                    )
        finally:
            self._closing = True
            self._closed.set()

    def get_stats(self) -> dict[str, int]:
        return {
            "queued": self._queue.qsize(),
            "sent": self._sent,
            "dropped": self._dropped,
        }
