from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from spotipy.cache_handler import CacheFileHandler, MemoryCacheHandler
from spotipy.oauth2 import SpotifyOauthError, SpotifyPKCE

from .config import Settings
from .errors import AuthExpiredError
from .types import Credential
from .utils import brief_id

logger = logging.getLogger("tunemigrate.auth")

SCOPES = ["playlist-modify-private", "playlist-modify-public", "user-read-private"]

# Credentials are treated as expired this many seconds before Spotify says so
EXPIRY_MARGIN = 5 * 60


def _expires_at(expires_in, now: Optional[float] = None) -> Optional[float]:
    if expires_in is None:
        return None
    return (now if now is not None else time.time()) + int(expires_in) - EXPIRY_MARGIN


def credential_from_token_info(info: Dict, now: Optional[float] = None) -> Credential:
    return Credential(
        access_token=info["access_token"],
        refresh_token=info.get("refresh_token"),
        expires_at=_expires_at(info.get("expires_in"), now),
    )


def _pkce(settings: Settings, cache_handler=None) -> SpotifyPKCE:
    settings.require("spotify_client_id", "spotify_redirect_uri")
    return SpotifyPKCE(
        client_id=settings.spotify_client_id,
        redirect_uri=settings.spotify_redirect_uri,
        scope=" ".join(SCOPES),
        open_browser=True,
        cache_handler=cache_handler or MemoryCacheHandler(),
    )


def login(settings: Settings) -> Credential:
    """Run the PKCE browser login (or reuse the token cache) and return a Credential.

    Tokens already provided through SPOTIFY_ACCESS_TOKEN are used as-is.
    """
    if settings.spotify_access_token:
        return Credential(
            access_token=settings.spotify_access_token,
            refresh_token=settings.spotify_refresh_token,
        )

    cache_dir = Path(".cache")
    cache_dir.mkdir(parents=True, exist_ok=True)
    auth_manager = _pkce(settings, cache_handler=CacheFileHandler(cache_path=str(cache_dir / "token_cache")))
    try:
        auth_manager.get_access_token()
    except SpotifyOauthError as e:
        raise AuthExpiredError(f"Spotify login failed: {e}") from e
    info = auth_manager.cache_handler.get_cached_token()
    if not info:
        raise AuthExpiredError("Spotify login did not return a token. Please log in again.")
    return credential_from_token_info(info)


def refresh_credential(credential: Credential, settings: Settings) -> Credential:
    """Exchange the refresh token for a new access token, updating credential in place."""
    if not credential.refresh_token:
        raise AuthExpiredError("No refresh token available. Please log in again.")
    try:
        info = _pkce(settings).refresh_access_token(credential.refresh_token)
    except (SpotifyOauthError, RuntimeError) as e:
        raise AuthExpiredError(f"Failed to refresh Spotify session ({e}). Please log in again.") from e

    credential.access_token = info["access_token"]
    if info.get("refresh_token"):
        credential.refresh_token = info["refresh_token"]
    credential.expires_at = _expires_at(info.get("expires_in"))
    logger.debug(f"Spotify access token refreshed ({brief_id(credential.access_token)})")
    return credential


def make_refresher(settings: Settings) -> Callable[[Credential], Credential]:
    def _refresh(credential: Credential) -> Credential:
        return refresh_credential(credential, settings)

    return _refresh
