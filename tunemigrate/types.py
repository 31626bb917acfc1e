from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

from .utils import format_duration


# Confidence tiers
HIGH = "high"
MEDIUM = "medium"
LOW = "low"

HIGH_CONFIDENCE = 85
MEDIUM_CONFIDENCE = 70

# Report decision constants
MATCHED = "MATCHED"
LOW_CONFIDENCE = "LOW_CONFIDENCE"
NOT_FOUND = "NOT_FOUND"
SKIPPED = "SKIPPED"


def confidence_tier(score: float) -> str:
    if score >= HIGH_CONFIDENCE:
        return HIGH
    if score >= MEDIUM_CONFIDENCE:
        return MEDIUM
    return LOW


@dataclass
class SourceItem:
    """Video-derived song awaiting a Spotify match.

    The spotify_* fields stay None until a match is attached.
    """
    id: str
    title: str
    artist: str
    thumbnail: Optional[str] = None
    duration: Optional[str] = None
    upload_date: Optional[str] = None
    selected: bool = True

    spotify_id: Optional[str] = None
    spotify_uri: Optional[str] = None
    spotify_title: Optional[str] = None
    spotify_artist: Optional[str] = None
    spotify_thumbnail: Optional[str] = None
    spotify_duration: Optional[str] = None
    match_confidence: Optional[int] = None
    manually_approved: bool = False
    is_replacement: bool = False

    @property
    def is_matched(self) -> bool:
        return bool(self.spotify_uri)

    def clear_match(self) -> None:
        self.spotify_id = None
        self.spotify_uri = None
        self.spotify_title = None
        self.spotify_artist = None
        self.spotify_thumbnail = None
        self.spotify_duration = None
        self.match_confidence = None


@dataclass
class CandidateTrack:
    id: str
    uri: str
    name: str
    artists: List[str]
    album: str = ""
    release_date: Optional[str] = None
    duration_ms: int = 0
    popularity: int = 0
    thumbnail: Optional[str] = None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)


@dataclass
class SpecialVersion:
    is_live: bool = False
    is_remix: bool = False
    is_cover: bool = False
    is_acoustic: bool = False


@dataclass
class ScoreBreakdown:
    """Per-candidate scoring record; only the winner's survives selection."""
    artist_match: int
    title_match: int
    duration_match: float
    date_match: int
    total_score: int
    enhanced_score: int
    tier: str


@dataclass
class MatchResult:
    candidate: CandidateTrack
    confidence: int
    breakdown: Optional[ScoreBreakdown] = None

    @property
    def tier(self) -> str:
        return confidence_tier(self.confidence)

    def apply_to(self, item: SourceItem) -> SourceItem:
        """Merge the chosen candidate's identifying fields into item."""
        cand = self.candidate
        item.spotify_id = cand.id
        item.spotify_uri = cand.uri
        item.spotify_title = cand.name
        item.spotify_artist = cand.artist_names
        item.spotify_thumbnail = cand.thumbnail
        item.spotify_duration = format_duration(cand.duration_ms) if cand.duration_ms else None
        item.match_confidence = max(0, min(100, int(self.confidence)))
        return item


@dataclass
class SongDetails:
    """Structured extraction returned by the AI assist."""
    title: str
    artist: str
    features: List[str] = field(default_factory=list)
    is_remix: bool = False
    confidence: int = 0


@dataclass
class SongAnalysis:
    is_remix: bool = False
    is_cover: bool = False
    is_live: bool = False
    is_acoustic: bool = False
    extracted_title: str = ""
    extracted_artist: str = ""
    confidence: int = 0


@dataclass
class Credential:
    """Spotify access credential, refreshed in place."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


@dataclass
class PlaylistInfo:
    id: str
    url: str


@dataclass
class CreationResult:
    playlist_url: str
    matched_count: int
    total_count: int
