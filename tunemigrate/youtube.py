from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import requests

from .errors import SourceError
from .types import SourceItem

logger = logging.getLogger("tunemigrate.youtube")

API_BASE = "https://www.googleapis.com/youtube/v3"
PAGE_SIZE = 50
UNAVAILABLE_TITLES = {"Deleted video", "Private video"}

_playlist_id_re = re.compile(r"(?:youtube\.com|youtu\.be).*?list=([^&\s]+)")
_iso_duration_re = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


def extract_playlist_id(url: str) -> Optional[str]:
    m = _playlist_id_re.search(url or "")
    return m.group(1) if m else None


def iso_duration_to_clock(value: Optional[str]) -> Optional[str]:
    """Convert an ISO-8601 duration ("PT3M53S") to "M:SS" or "H:MM:SS"."""
    if not value:
        return None
    m = _iso_duration_re.match(value)
    if not m or not any(m.groups()):
        return None
    days, hours, minutes, seconds = (int(g or 0) for g in m.groups())
    hours += days * 24
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


class YouTubePlaylistSource:
    """Reads playlist titles, items and durations from the YouTube Data API."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None, timeout: float = 15.0):
        if not api_key:
            raise SourceError("YOUTUBE_API_KEY must be set to read YouTube playlists")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, endpoint: str, params: Dict) -> Dict:
        try:
            resp = self.session.get(
                f"{API_BASE}/{endpoint}",
                params={**params, "key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SourceError(f"YouTube request failed: {e}") from e
        if resp.status_code != 200:
            raise SourceError(f"YouTube {endpoint} request failed ({resp.status_code}): {resp.text[:200]}")
        return resp.json()

    def playlist_title(self, playlist_id: str) -> str:
        data = self._get("playlists", {"part": "snippet", "id": playlist_id})
        items = data.get("items") or []
        if not items:
            raise SourceError("Playlist not found")
        return items[0]["snippet"]["title"]

    def _iter_playlist_items(self, playlist_id: str) -> Iterator[Dict]:
        page_token: Optional[str] = None
        while True:
            params = {"part": "snippet,contentDetails", "maxResults": PAGE_SIZE, "playlistId": playlist_id}
            if page_token:
                params["pageToken"] = page_token
            data = self._get("playlistItems", params)
            yield from data.get("items") or []
            page_token = data.get("nextPageToken")
            if not page_token:
                break

    def _durations(self, video_ids: List[str]) -> Dict[str, str]:
        durations: Dict[str, str] = {}
        for start in range(0, len(video_ids), PAGE_SIZE):
            batch = video_ids[start : start + PAGE_SIZE]
            data = self._get("videos", {"part": "contentDetails", "id": ",".join(batch)})
            for it in data.get("items") or []:
                clock = iso_duration_to_clock((it.get("contentDetails") or {}).get("duration"))
                if clock:
                    durations[it["id"]] = clock
        return durations

    def fetch_items(self, playlist_id: str) -> List[SourceItem]:
        items: List[SourceItem] = []
        video_ids: List[str] = []
        for raw in self._iter_playlist_items(playlist_id):
            snippet = raw.get("snippet") or {}
            title = snippet.get("title")
            if not title or title in UNAVAILABLE_TITLES:
                continue
            video_id = (raw.get("contentDetails") or {}).get("videoId") or (snippet.get("resourceId") or {}).get("videoId")
            thumbs = snippet.get("thumbnails") or {}
            thumb = (thumbs.get("medium") or thumbs.get("default") or {}).get("url")
            items.append(
                SourceItem(
                    id=video_id or str(uuid.uuid4()),
                    title=title,
                    artist=snippet.get("videoOwnerChannelTitle") or "Unknown Artist",
                    thumbnail=thumb,
                    upload_date=(raw.get("contentDetails") or {}).get("videoPublishedAt") or snippet.get("publishedAt"),
                )
            )
            if video_id:
                video_ids.append(video_id)

        durations = self._durations(video_ids) if video_ids else {}
        for item in items:
            item.duration = durations.get(item.id)
        logger.info(f"Fetched {len(items)} videos from playlist {playlist_id}")
        return items

    def extract(self, url: str) -> Tuple[str, List[SourceItem]]:
        playlist_id = extract_playlist_id(url)
        if not playlist_id:
            raise SourceError("Invalid YouTube playlist URL")
        return self.playlist_title(playlist_id), self.fetch_items(playlist_id)


def load_items(path: Path | str) -> Tuple[Optional[str], List[SourceItem]]:
    """Load source items from a JSON feed.

    Accepts either a list of items or {"title": ..., "songs": [...]}. Keys may be
    camelCase ("uploadDate") or snake_case ("upload_date").
    """
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SourceError(f"Cannot read source items from {p}: {e}") from e

    title = None
    if isinstance(data, dict):
        title = data.get("title")
        data = data.get("songs") or data.get("items") or []
    if not isinstance(data, list):
        raise SourceError(f"{p} does not contain a list of songs")

    items: List[SourceItem] = []
    for i, raw in enumerate(data):
        if not isinstance(raw, dict) or not raw.get("title"):
            logger.warning(f"Skipping entry {i} in {p}: no title")
            continue
        items.append(
            SourceItem(
                id=str(raw.get("id") or uuid.uuid4()),
                title=raw["title"],
                artist=raw.get("artist") or "",
                thumbnail=raw.get("thumbnail"),
                duration=raw.get("duration"),
                upload_date=raw.get("uploadDate") or raw.get("upload_date"),
                selected=bool(raw.get("selected", True)),
            )
        )
    return title, items
