"""
Player WebSocket endpoint.

Runs one connection from accept to close:
1. Accept (bounded by WS_ACCEPT_TIMEOUT)
2. Register with the gateway (WELCOME + LOBBY_INFO) and start the writer
3. Message loop: every text or binary frame goes to gateway.handle_frame()
4. Disconnect: implicit leave, flush pending frames, close

The loop also ends when the server closes the transport itself
(heartbeat timeout, shutdown), without waiting for the client.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from room_gateway.components.connection.transport import WebSocketTransport
from room_gateway.components.core.constants import WSCloseCode, WSConstants
from room_gateway.config.logging import audit_ws_connection, get_logger, mask_player_id

if TYPE_CHECKING:
    from room_gateway.components.session.participant import Participant
    from room_gateway.gateway import ConnectionGateway

logger = get_logger(__name__)


class PlayerEndpoint:
    """
    Connection handler for a single player.

    Usage:
        endpoint = PlayerEndpoint(websocket, gateway, "/ws")
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        gateway: "ConnectionGateway",
        endpoint_name: str = "/ws",
        accept_timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            gateway: ConnectionGateway owning the player state.
            endpoint_name: Name for logging (e.g., "/ws").
            accept_timeout: Seconds allowed for the handshake.
        """
        self.websocket = websocket
        self.gateway = gateway
        self.endpoint_name = endpoint_name
        self.accept_timeout = accept_timeout

        self.participant: "Participant | None" = None
        self.transport: WebSocketTransport | None = None

    @property
    def origin(self) -> str | None:
        return self.websocket.headers.get("origin")

    # =========================================================================
    # Lifecycle logging
    # =========================================================================

    def log_connect(self) -> None:
        logger.info(
            "Player connected",
            endpoint=self.endpoint_name,
            player_id=mask_player_id(self.participant.id if self.participant else None),
        )
        audit_ws_connection(
            event_type="CONNECT",
            endpoint=self.endpoint_name,
            player_id=self.participant.id if self.participant else None,
            origin=self.origin,
        )

    def log_disconnect(self, reason: str, room_id: str | None = None) -> None:
        logger.info(
            "Player disconnected",
            endpoint=self.endpoint_name,
            player_id=mask_player_id(self.participant.id if self.participant else None),
            reason=reason,
        )
        audit_ws_connection(
            event_type="DISCONNECT",
            endpoint=self.endpoint_name,
            player_id=self.participant.id if self.participant else None,
            room_id=room_id,
            origin=self.origin,
            reason=reason,
        )

    # =========================================================================
    # Run
    # =========================================================================

    async def run(self) -> None:
        """Main entry point - run the connection until either side closes it."""
        try:
            await asyncio.wait_for(self.websocket.accept(), timeout=self.accept_timeout)
        except asyncio.TimeoutError:
            logger.warning("WebSocket accept timed out", endpoint=self.endpoint_name, origin=self.origin)
            return

        if self.gateway.is_shutting_down:
            await self.websocket.close(code=WSCloseCode.GOING_AWAY, reason="Server shutting down")
            return

        player_id = str(uuid.uuid4())
        self.transport = WebSocketTransport(
            self.websocket,
            connection_id=mask_player_id(player_id),
            queue_size=self.gateway.settings.outbound_queue_size,
        )
        writer_task = asyncio.create_task(
            self.transport.run_writer(),
            name=f"ws_writer_{player_id[:8]}",
        )
        self.participant = self.gateway.connect(self.transport, participant_id=player_id)
        self.log_connect()

        reason = "client_disconnect"
        last_room_id: str | None = None
        try:
            reason = await self._message_loop()
        except WebSocketDisconnect as e:
            reason = f"client_disconnect ({e.code})"
        finally:
            last_room_id = self.participant.room_id
            self.gateway.disconnect(self.participant)
            await self._finish_writer(writer_task)

        self.log_disconnect(reason, last_room_id)

    async def _finish_writer(self, writer_task: asyncio.Task) -> None:
        """Give queued frames a moment to flush, then stop the writer."""
        try:
            await asyncio.wait_for(self.transport.wait_closed(), timeout=WSConstants.WS_CLOSE_FLUSH_TIMEOUT)
        except asyncio.TimeoutError:
            logger.debug("Writer did not flush in time", endpoint=self.endpoint_name)
        if not writer_task.done():
            writer_task.cancel()
            try:
                await writer_task
            except asyncio.CancelledError:
                pass

    async def _message_loop(self) -> str:
        """
        Receive frames until the client disconnects or the server closes.

        Returns:
            Reason the loop ended.

        Raises:
            WebSocketDisconnect: When the client goes away.
        """
        closed_task = asyncio.ensure_future(self.transport.wait_closed())
        receive_task: asyncio.Future | None = None
        try:
            while True:
                receive_task = asyncio.ensure_future(self.websocket.receive())
                done, _ = await asyncio.wait(
                    {receive_task, closed_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if receive_task not in done:
                    return f"server_close ({self.transport.close_code})"

                event = receive_task.result()
                if event["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(event.get("code", WSCloseCode.NORMAL))

                raw = event.get("text")
                if raw is None:
                    raw = event.get("bytes")
                if raw is None:
                    continue

                try:
                    self.gateway.handle_frame(self.participant, raw)
                except Exception as e:
                    # One bad frame must not take the connection or the room down
                    logger.error(
                        "Unexpected error handling frame",
                        endpoint=self.endpoint_name,
                        player_id=mask_player_id(self.participant.id),
                        error=type(e).__name__,
                        exc_info=True,
                    )
        finally:
            for task in (receive_task, closed_task):
                if task is not None and not task.done():
                    task.cancel()
