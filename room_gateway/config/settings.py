"""
Gateway settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings with defaults for development."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Environment
    environment: str = "development"
    debug: bool = True

    # Comma-separated list of allowed origins for the HTTP side channel
    # (empty allows any origin, there is no authentication to protect)
    allowed_origins: str = ""

    # Rooms
    max_players_per_room: int = 8
    room_code_length: int = 8
    room_timeout: int = 30 * 60  # Seconds of inactivity before a room is closed
    room_cleanup_interval: int = 60  # Seconds between idle sweeps

    # Public lobby: always registered, never has a host
    lobby_room_id: str = "LOBBY"
    lobby_max_players: int = 64

    # Rate limiting (fixed window, applies to every inbound message)
    max_messages_per_window: int = 30
    rate_limit_window: float = 1.0  # Seconds

    # Connection
    ping_interval: int = 10  # Seconds between server heartbeats
    connection_timeout: int = 30  # Seconds of silence before force close
    max_message_size: int = 64 * 1024  # 64 KB
    outbound_queue_size: int = 256  # Frames buffered per connection

    # Validation
    max_position_value: float = 10000.0
    max_velocity_value: float = 500.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def origins(self) -> list[str]:
        """Parsed CORS origins ("*" when none are configured)."""
        parsed = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return parsed or ["*"]

    def validate_runtime(self) -> list[str]:
        """
        Sanity-check values that would break room bookkeeping.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.max_players_per_room < 1:
            errors.append("MAX_PLAYERS_PER_ROOM must be at least 1")

        if self.lobby_max_players < 1:
            errors.append("LOBBY_MAX_PLAYERS must be at least 1")

        if self.room_code_length < 4:
            errors.append("ROOM_CODE_LENGTH must be at least 4")

        if self.connection_timeout <= self.ping_interval:
            errors.append("CONNECTION_TIMEOUT must be longer than PING_INTERVAL")

        if self.environment == "production" and self.debug:
            errors.append("DEBUG must be False in production")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
