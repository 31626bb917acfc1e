from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_AI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_AI_MODEL = "gpt-4o-mini"
DEFAULT_REQUEST_PAUSE = 0.2


@dataclass
class Settings:
    spotify_client_id: Optional[str] = None
    spotify_redirect_uri: Optional[str] = None
    spotify_access_token: Optional[str] = None
    spotify_refresh_token: Optional[str] = None
    youtube_api_key: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_base_url: str = DEFAULT_AI_BASE_URL
    ai_model: str = DEFAULT_AI_MODEL
    request_pause: float = DEFAULT_REQUEST_PAUSE

    def require(self, *names: str) -> None:
        missing: List[str] = [n.upper() for n in names if not getattr(self, n)]
        if missing:
            raise RuntimeError(f"{', '.join(missing)} must be set in the environment or .env")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds, got {raw!r}")


def load_settings() -> Settings:
    """Read settings from the environment, loading .env if present."""
    load_dotenv(override=False)
    return Settings(
        spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID"),
        spotify_redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI"),
        spotify_access_token=os.getenv("SPOTIFY_ACCESS_TOKEN"),
        spotify_refresh_token=os.getenv("SPOTIFY_REFRESH_TOKEN"),
        youtube_api_key=os.getenv("YOUTUBE_API_KEY"),
        ai_api_key=os.getenv("AI_API_KEY"),
        ai_base_url=os.getenv("AI_BASE_URL") or DEFAULT_AI_BASE_URL,
        ai_model=os.getenv("AI_MODEL") or DEFAULT_AI_MODEL,
        request_pause=_float_env("TUNEMIGRATE_REQUEST_PAUSE", DEFAULT_REQUEST_PAUSE),
    )
