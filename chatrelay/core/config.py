import os
from functools import lru_cache
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


def _split_origins(raw: str | None) -> list[str]:
    if raw is None:
        return ["*"]
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


class Settings(BaseModel):
    """Process-wide configuration snapshot, loaded once at startup."""

    model_config = ConfigDict(frozen=True)

    # App
    APP_NAME: str = "Chat Relay"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=3000, gt=0, lt=65536)

    # CORS
    CORS_ORIGINS: tuple[str, ...] = ("*",)

    # OpenAI
    OPENAI_API_KEY: str = ""
    UPSTREAM_BASE_URL: str = "https://api.openai.com/v1"
    UPSTREAM_TIMEOUT: float = Field(default=60.0, gt=0)
    UPSTREAM_CONNECT_TIMEOUT: float = Field(default=10.0, gt=0)

    # Inbound body limit (1mb)
    MAX_BODY_BYTES: int = Field(default=1024 * 1024, gt=0)

    @property
    def has_credential(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {
            "DEBUG": env.get("DEBUG", "False").lower() == "true",
            "CORS_ORIGINS": tuple(_split_origins(env.get("CORS_ORIGINS"))),
            "OPENAI_API_KEY": env.get("OPENAI_API_KEY", "").strip(),
        }
        # Only pass through what is set so field defaults apply otherwise
        for name in (
            "LOG_LEVEL",
            "HOST",
            "PORT",
            "UPSTREAM_BASE_URL",
            "UPSTREAM_TIMEOUT",
            "UPSTREAM_CONNECT_TIMEOUT",
            "MAX_BODY_BYTES",
        ):
            if env.get(name):
                values[name] = env[name]
        return cls(**values)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()
