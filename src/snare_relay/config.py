from __future__ import annotations

from typing import Annotated, Literal

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 4000
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: list[str] = ["*"]

    JWT_VERIFY_MODE: Literal["none", "hs256", "jwks", "supabase"] = "none"
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    JWKS_URL: str | None = None

    SUPABASE_URL: str | None = None
    SUPABASE_ANON_KEY: str | None = None

    WS_PING_INTERVAL_SECONDS: Annotated[float, Field(gt=0)] = 10.0
    # asyncio.Queue treats 0 as unbounded, so the queue must hold at least one frame
    WS_OUTBOUND_QUEUE_SIZE: Annotated[int, Field(gt=0)] = 100
    WS_MAX_ENVELOPE_BYTES: Annotated[int, Field(gt=0)] = 64 * 1024

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
