"""Game server configuration via environment variables."""

import json
from typing import Annotated, Self

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

from game.logic.settings import DEFAULT_MAX_PLAYERS, DEFAULT_MIN_PLAYERS_TO_START, GameSettings
from game.session.directory import DEFAULT_MAX_IDLE_SECONDS, DEFAULT_RECORD_TTL_SECONDS
from shared.storage import StoreBackend


def parse_origins(value: str | list[str]) -> list[str]:
    """Parse CORS origins from a list, a JSON array string or a comma-separated string.

    Raises ValueError for empty values or malformed JSON.
    """
    if isinstance(value, list):
        parsed = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
                raise ValueError("JSON value must be an array of strings")
        else:
            parsed = [origin.strip() for origin in stripped.split(",") if origin.strip()]
    if not parsed:
        raise ValueError("cors_origins must not be empty")
    return parsed


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "GAME_"}

    log_dir: str = Field(default="backend/logs/game", min_length=1)
    # NoDecode hands the raw env string to parse_origins so CSV works as well as JSON.
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:5173"]

    store_backend: StoreBackend = StoreBackend.MEMORY
    redis_url: str | None = None
    room_ttl_seconds: int = Field(default=DEFAULT_RECORD_TTL_SECONDS, ge=60)
    max_idle_seconds: int = Field(default=DEFAULT_MAX_IDLE_SECONDS, ge=1)
    reaper_interval_seconds: int = Field(default=300, ge=0)  # 0 disables the reaper

    max_rooms: int = Field(default=100, ge=1)
    max_players: int = Field(default=DEFAULT_MAX_PLAYERS, ge=1)
    min_players_to_start: int = Field(default=DEFAULT_MIN_PLAYERS_TO_START, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origins(v)

    @model_validator(mode="after")
    def _validate_store(self) -> Self:
        if self.store_backend == StoreBackend.REDIS and not self.redis_url:
            raise ValueError("GAME_REDIS_URL is required when GAME_STORE_BACKEND=redis")
        return self

    def game_settings(self) -> GameSettings:
        """Game rules derived from this configuration."""
        return GameSettings(
            max_players=self.max_players,
            min_players_to_start=self.min_players_to_start,
        )
