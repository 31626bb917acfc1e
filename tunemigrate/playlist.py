from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .ai import AIAssist
from .errors import AuthExpiredError, BatchAbortedError, NoCandidatesError
from .matcher import search_track
from .types import CandidateTrack, CreationResult, MatchResult, PlaylistInfo, SourceItem

logger = logging.getLogger("tunemigrate.playlist")

ProgressCallback = Callable[[int], None]

DEFAULT_DESCRIPTION = "Converted from YouTube with TuneMigrate"


def _report(progress_callback: Optional[ProgressCallback], percent: int) -> None:
    if progress_callback is None:
        return
    try:
        progress_callback(percent)
    except Exception as e:
        logger.warning(f"Progress callback failed: {e}")


class PlaylistAssembler:
    """Match source items one at a time and build the Spotify playlist."""

    def __init__(
        self,
        catalog,
        assist: Optional[AIAssist] = None,
        pause: float = 0.2,
        max_attempts: int = 2,
        max_consecutive_failures: int = 3,
    ):
        self.catalog = catalog
        self.assist = assist
        self.pause = pause
        self.max_attempts = max(1, max_attempts)
        self.max_consecutive_failures = max_consecutive_failures

    def _match_one(self, item: SourceItem) -> MatchResult:
        """Match a single item, retrying in place once before giving up."""
        attempt = 1
        while True:
            try:
                return search_track(item, self.catalog, self.assist)
            except (NoCandidatesError, AuthExpiredError):
                raise
            except Exception as e:
                if attempt >= self.max_attempts:
                    raise
                logger.debug(f"Attempt {attempt}/{self.max_attempts} failed for '{item.title}', retrying: {e}")
                attempt += 1

    def match_all(
        self,
        items: List[SourceItem],
        progress_callback: Optional[ProgressCallback] = None,
        skip_matched: bool = False,
    ) -> List[SourceItem]:
        """Attach Spotify matches in place to every selected item.

        Items that fail stay unmatched. After `max_consecutive_failures` failures
        in a row the batch stops with BatchAbortedError; matches made so far are
        kept on the items. AuthExpiredError is never swallowed.
        """
        todo = [it for it in items if it.selected and not (skip_matched and it.is_matched)]
        total = len(todo)
        consecutive = 0

        for index, item in enumerate(todo, start=1):
            if index > 1 and self.pause > 0:
                time.sleep(self.pause)
            try:
                result = self._match_one(item)
                result.apply_to(item)
                consecutive = 0
                logger.info(
                    f"Matched '{item.title}' -> '{item.spotify_title}' by {item.spotify_artist} ({result.confidence}%, {result.tier})"
                )
            except NoCandidatesError as e:
                consecutive = 0
                logger.info(f"No match for '{item.title}': {e}")
            except AuthExpiredError:
                raise
            except Exception as e:
                consecutive += 1
                logger.error(f"Error finding track '{item.title}': {e}")
                if consecutive >= self.max_consecutive_failures:
                    _report(progress_callback, round(index / total * 100))
                    raise BatchAbortedError(items, consecutive, e) from e

            _report(progress_callback, round(index / total * 100))

        return items

    def find_tracks(self, query: str) -> List[CandidateTrack]:
        """Free-text search used by the manual replace and add-song flows."""
        return self.catalog.search_free_text(query)

    def create_playlist(self, name: str, description: str) -> PlaylistInfo:
        return self.catalog.create_playlist(name, description)

    def add_tracks(self, playlist_id: str, uris: List[str]) -> None:
        self.catalog.add_tracks(playlist_id, uris)

    def create_from_songs(
        self,
        name: str,
        description: Optional[str],
        items: List[SourceItem],
        progress_callback: Optional[ProgressCallback] = None,
        min_confidence: int = 0,
        match_remaining: bool = True,
    ) -> CreationResult:
        """Match remaining items, create a private playlist and add every included track.

        An item is included when it is selected, has a Spotify URI and either
        meets `min_confidence` or was manually approved / replaced. Items that
        already carry a match are not searched again. If playlist
        creation fails nothing is added and the error propagates.
        """
        self.catalog.validate()
        if match_remaining:
            self.match_all(items, progress_callback, skip_matched=True)

        playlist = self.create_playlist(name, description or DEFAULT_DESCRIPTION)
        selected = [it for it in items if it.selected]
        uris = [it.spotify_uri for it in selected if is_included(it, min_confidence)]
        if uris:
            self.add_tracks(playlist.id, uris)
        logger.info(f"Created playlist '{name}' with {len(uris)}/{len(selected)} tracks: {playlist.url}")
        return CreationResult(playlist_url=playlist.url, matched_count=len(uris), total_count=len(selected))


def is_included(item: SourceItem, min_confidence: int = 0) -> bool:
    if not item.selected or not item.spotify_uri:
        return False
    if item.manually_approved or item.is_replacement:
        return True
    return (item.match_confidence or 0) >= min_confidence


def approve(item: SourceItem) -> SourceItem:
    """Accept an item's current match regardless of its confidence."""
    item.manually_approved = True
    return item


def replace(item: SourceItem, candidate: CandidateTrack) -> SourceItem:
    """Substitute a user-chosen track; replacements count as 100% confidence."""
    MatchResult(candidate=candidate, confidence=100).apply_to(item)
    item.is_replacement = True
    return item


def song_from_track(candidate: CandidateTrack) -> SourceItem:
    """Build a new selected item straight from a Spotify track (the add-song flow)."""
    item = SourceItem(
        id=f"spotify-{candidate.id}",
        title=candidate.name,
        artist=candidate.artist_names,
        thumbnail=candidate.thumbnail,
        selected=True,
    )
    return MatchResult(candidate=candidate, confidence=100).apply_to(item)
