"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings with defaults for development."""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Server binding (consumed by the uvicorn entry point only)
    stream_gateway_host: str = "0.0.0.0"
    stream_gateway_port: int = 8080

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Logging (empty = derived from debug / environment)
    log_level: str = ""  # DEBUG, INFO, WARNING, ...
    log_format: str = ""  # "json" or "text"

    # WebSocket
    ws_heartbeat_interval: float = 30.0  # Seconds between liveness probes
    ws_event_callback_timeout: float = 5.0  # Timeout in seconds for async event handlers
    ws_send_timeout: float = 5.0  # Upper bound for a single send during fan-out

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_settings(self) -> list[str]:
        """
        Validate that the gateway is properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if self.ws_heartbeat_interval <= 0:
            errors.append("WS_HEARTBEAT_INTERVAL must be a positive number of seconds")

        if self.ws_event_callback_timeout <= 0:
            errors.append("WS_EVENT_CALLBACK_TIMEOUT must be a positive number of seconds")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
