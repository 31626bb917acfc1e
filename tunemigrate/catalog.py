from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from .errors import AuthExpiredError, CatalogError
from .types import CandidateTrack, Credential, PlaylistInfo
from .utils import call_spotify_with_retries, chunked

logger = logging.getLogger("tunemigrate.catalog")

TITLE_LIMIT = 8
TITLE_ARTIST_LIMIT = 5
FREE_TEXT_LIMIT = 10
ADD_TRACKS_BATCH = 100

# Only idempotent reads back off on 429; writes are sent once
RATE_LIMIT_RETRY_METHODS = {"search"}


def _default_client(token: str):
    # spotipy's own retry loop is disabled; call_spotify_with_retries owns backoff
    return spotipy.Spotify(auth=token, requests_timeout=15, retries=0, status_retries=0)


def candidate_from_item(item: Dict) -> CandidateTrack:
    album = item.get("album") or {}
    images = album.get("images") or []
    try:
        duration_ms = int(item.get("duration_ms") or 0)
    except (TypeError, ValueError):
        duration_ms = 0
    try:
        popularity = int(item.get("popularity") or 0)
    except (TypeError, ValueError):
        popularity = 0
    return CandidateTrack(
        id=item.get("id", ""),
        uri=item.get("uri", ""),
        name=item.get("name", ""),
        artists=[a.get("name", "") for a in item.get("artists", []) if a],
        album=album.get("name", "") or "",
        release_date=album.get("release_date"),
        duration_ms=duration_ms,
        popularity=popularity,
        thumbnail=images[0].get("url") if images else None,
    )


class SpotifyCatalog:
    """Spotify Web API access with the one-refresh credential policy.

    Every call refreshes an expired credential first; otherwise a 401 triggers
    exactly one refresh and a retry of the same call. A call never refreshes
    twice: a 401 after its refresh raises AuthExpiredError. Any other failure
    raises CatalogError. Searches back off on 429; nothing retries on 5xx.
    """

    def __init__(
        self,
        credential: Credential,
        refresher: Optional[Callable[[Credential], Credential]] = None,
        client_factory: Optional[Callable[[str], object]] = None,
    ):
        self.credential = credential
        self._refresher = refresher
        self._client_factory = client_factory or _default_client
        self._user_id: Optional[str] = None

    def refresh(self) -> Credential:
        if self._refresher is None:
            raise AuthExpiredError("Spotify session expired and cannot be refreshed. Please log in again.")
        return self._refresher(self.credential)

    def _invoke(self, method: str, *args, **kwargs):
        func = getattr(self._client_factory(self.credential.access_token), method)
        if method in RATE_LIMIT_RETRY_METHODS:
            return call_spotify_with_retries(func, *args, **kwargs)
        return func(*args, **kwargs)

    def _call(self, method: str, *args, **kwargs):
        refreshed = False
        if self.credential.is_expired():
            logger.debug(f"Access token expired, refreshing before {method}")
            self.refresh()
            refreshed = True
        try:
            return self._invoke(method, *args, **kwargs)
        except SpotifyException as e:
            if e.http_status == 401 and refreshed:
                raise AuthExpiredError() from e
            if e.http_status != 401:
                raise CatalogError(e.http_status, e.msg) from e
            logger.info("Spotify rejected the access token, refreshing once")
        except requests.RequestException as e:
            raise CatalogError(None, str(e)) from e

        self.refresh()
        try:
            return self._invoke(method, *args, **kwargs)
        except SpotifyException as e:
            if e.http_status == 401:
                raise AuthExpiredError() from e
            raise CatalogError(e.http_status, e.msg) from e
        except requests.RequestException as e:
            raise CatalogError(None, str(e)) from e

    def _search(self, query: str, limit: int) -> List[CandidateTrack]:
        resp = self._call("search", q=query, type="track", limit=limit)
        tracks = (resp or {}).get("tracks")
        if not isinstance(tracks, dict) or not isinstance(tracks.get("items"), list):
            raise CatalogError(None, "Unexpected response from Spotify search")
        cands = [candidate_from_item(it) for it in tracks["items"] if it and it.get("uri")]
        logger.debug(f"search {query!r} -> {len(cands)} candidates")
        return cands

    def search_by_title(self, title: str) -> List[CandidateTrack]:
        return self._search(f"track:{title}", TITLE_LIMIT)

    def search_by_title_and_artist(self, title: str, artist: str) -> List[CandidateTrack]:
        return self._search(f"track:{title} artist:{artist}", TITLE_ARTIST_LIMIT)

    def search_free_text(self, query: str) -> List[CandidateTrack]:
        return self._search(query, FREE_TEXT_LIMIT)

    def current_user(self) -> Dict:
        me = self._call("me")
        self._user_id = me.get("id")
        return me

    def validate(self) -> Dict:
        """Check the credential once by fetching the current user profile."""
        return self.current_user()

    def create_playlist(self, name: str, description: str) -> PlaylistInfo:
        user_id = self._user_id or self.current_user()["id"]
        pl = self._call(
            "user_playlist_create",
            user=user_id,
            name=name,
            public=False,
            description=description or "",
        )
        return PlaylistInfo(id=pl["id"], url=(pl.get("external_urls") or {}).get("spotify", ""))

    def add_tracks(self, playlist_id: str, uris: List[str]) -> None:
        for batch in chunked(uris, ADD_TRACKS_BATCH):
            self._call("playlist_add_items", playlist_id, batch)
