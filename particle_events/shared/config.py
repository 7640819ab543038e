"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the stream client depends on (reconnect delay, keep-alive window,
connect timeout) is declared once here and read from `PARTICLE_*` environment
variables or a `.env` file. The event stream and the CLI take their defaults
from the `settings` singleton, so tuning a deployment never means editing code.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PARTICLE_",
        env_file=".env",
        # Tolerate missing env vars to allow easy out-of-the-box execution
        env_file_encoding="utf-8",
        extra="ignore",
    )

    API_BASE_URL: str = "https://api.particle.io"
    API_TOKEN: str = ""
    LOG_LEVEL: str = "INFO"

    # Event stream
    RECONNECT_INTERVAL_MS: int = 2000
    # The cloud sends a keep-alive at most 12 seconds after the last event
    IDLE_TIMEOUT_MS: int = 13000
    CONNECT_TIMEOUT_S: float = 10.0

    # Local fixture server
    PORT: int = 8000
    FIXTURE_ACCESS_TOKEN: str = "fixture-token"
    FIXTURE_KEEPALIVE_S: float = 10.0

settings = Settings()
