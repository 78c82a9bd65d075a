"""
Centralized structured logging for the gateway.
Uses Python's standard logging with JSON formatting for production.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from room_gateway.config.settings import Settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def __init__(self, include_source: bool = False) -> None:
        super().__init__()
        self._include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra_data") and record.extra_data:
            log_data["data"] = record.extra_data

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {record.getMessage()}"

        # Add extra data if present
        if hasattr(record, "extra_data") and record.extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Custom logger that supports structured data.

        logger.info("Room created", room_id="ABCD2345", host=player_id)
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        """Log with optional structured data."""
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


# Set custom logger class before any gateway logger is created
logging.setLoggerClass(StructuredLogger)


def setup_logging(settings: "Settings") -> None:
    """
    Configure logging for the gateway.
    Call this once at application startup.
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if settings.environment == "production":
        formatter: logging.Formatter = StructuredFormatter(include_source=settings.debug)
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from room_gateway.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Player joined", room_id=room.id, player_id=player.id)
        logger.error("Frame handling failed", player_id=player.id, exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


def mask_player_id(player_id: str | None) -> str:
    """
    Shorten a player id for audit logs.

    Player ids are anonymous but long-lived for the connection; the first
    8 characters are enough to correlate log lines.
    """
    if not player_id:
        return "<no-player>"
    if len(player_id) <= 8:
        return player_id
    return f"{player_id[:8]}..."


# Pre-configured loggers
gateway_logger = get_logger("room_gateway")

# Dedicated security audit logger
security_audit_logger = get_logger("security.audit")


def audit_ws_connection(
    event_type: str,
    endpoint: str,
    player_id: str | None = None,
    room_id: str | None = None,
    origin: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Log WebSocket connection lifecycle events.

    Args:
        event_type: Type of event (CONNECT, DISCONNECT, TIMEOUT, etc.)
        endpoint: WebSocket endpoint path
        player_id: Server-issued player id
        room_id: Room the player was in, if any
        origin: Origin header value
        reason: Reason for event (especially for failures)
        **extra: Additional context data
    """
    security_audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        player_id=mask_player_id(player_id),
        room_id=room_id,
        origin=origin,
        reason=reason,
        **extra,
    )


def audit_rate_limit_event(
    context: str,
    identifier: str,
    limit: int,
    window: float,
    **extra: Any,
) -> None:
    """
    Log rate limiting events.

    Args:
        context: Where the limit was hit (e.g. "ws_message")
        identifier: Player id being rate limited
        limit: Rate limit that was exceeded
        window: Time window in seconds
        **extra: Additional context data
    """
    security_audit_logger.warning(
        f"RATE_LIMIT_AUDIT: {context}",
        context=context,
        identifier=mask_player_id(identifier),
        limit=limit,
        window=window,
        **extra,
    )
