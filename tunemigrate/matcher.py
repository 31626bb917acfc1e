from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .ai import AIAssist
from .cleaner import channel_artist, clean_title, detect_special_version, extract_artist
from .errors import NoCandidatesError
from .similarity import (
    compare_artists,
    compare_durations,
    compare_release_dates,
    release_date_bonus,
    string_similarity,
    title_similarity,
)
from .types import CandidateTrack, MatchResult, ScoreBreakdown, SongDetails, SourceItem, confidence_tier

logger = logging.getLogger("tunemigrate.matcher")

# Winning score needed before the title+artist search is skipped
ACCEPT_CONFIDENCE = 70
AI_EXTRACT_CONFIDENCE = 60
AI_ANALYZE_CONFIDENCE = 70

FLAG_BONUS = 5
POPULARITY_BONUS = 5
POPULAR_THRESHOLD = 70
ALBUM_BONUS = 10
ARTIST_OVERLAP_BONUS = 5
FEATURE_BONUS = 5


def source_title(item: SourceItem, ai_details: Optional[SongDetails] = None) -> str:
    if ai_details and ai_details.title:
        return ai_details.title
    return clean_title(item.title)


def source_artist(item: SourceItem, ai_details: Optional[SongDetails] = None) -> str:
    if ai_details and ai_details.artist:
        return ai_details.artist
    return extract_artist(item.title) or channel_artist(item.artist)


def _flag_agreements(item: SourceItem, cand: CandidateTrack, ai_details: Optional[SongDetails]) -> int:
    src = detect_special_version(item.title)
    if ai_details is not None:
        src.is_remix = ai_details.is_remix
    other = detect_special_version(cand.name)
    return sum(
        1
        for a, b in (
            (src.is_live, other.is_live),
            (src.is_remix, other.is_remix),
            (src.is_cover, other.is_cover),
            (src.is_acoustic, other.is_acoustic),
        )
        if a == b
    )


def _album_overlaps(title: str, album: str) -> bool:
    t = title.lower().strip()
    a = album.lower().strip()
    return bool(t and a) and (a in t or t in a)


def _any_artist_overlaps(artist: str, cand: CandidateTrack) -> bool:
    s = artist.lower().strip()
    if not s:
        return False
    return any(a and (a.lower() in s or s in a.lower()) for a in cand.artists)


def _featured_artist_hits(ai_details: Optional[SongDetails], cand: CandidateTrack) -> int:
    if ai_details is None:
        return 0
    return sum(1 for f in ai_details.features if _any_artist_overlaps(f, cand))


def score_breakdown(item: SourceItem, cand: CandidateTrack, ai_details: Optional[SongDetails] = None) -> ScoreBreakdown:
    """Weighted artist/title/duration/date score plus version, popularity, album and artist bonuses.

    With AI details, each extracted featured artist credited on the candidate adds
    another bonus. The enhanced score never exceeds 100.
    """
    title = source_title(item, ai_details)
    artist = source_artist(item, ai_details)

    artist_match = compare_artists(artist, cand.primary_artist)
    title_match = title_similarity(title, cand.name)
    duration_match = compare_durations(item.duration, cand.duration_ms)
    date_match = compare_release_dates(item.upload_date, cand.release_date)
    total = round(artist_match * 0.3 + title_match * 0.3 + duration_match * 0.35 + date_match * 0.05)

    bonus = FLAG_BONUS * _flag_agreements(item, cand, ai_details)
    if cand.popularity > POPULAR_THRESHOLD:
        bonus += POPULARITY_BONUS
    if _album_overlaps(item.title, cand.album) or _album_overlaps(title, cand.album):
        bonus += ALBUM_BONUS
    if _any_artist_overlaps(artist, cand):
        bonus += ARTIST_OVERLAP_BONUS
    bonus += FEATURE_BONUS * _featured_artist_hits(ai_details, cand)

    enhanced = min(100, total + bonus)
    return ScoreBreakdown(
        artist_match=artist_match,
        title_match=title_match,
        duration_match=duration_match,
        date_match=date_match,
        total_score=total,
        enhanced_score=enhanced,
        tier=confidence_tier(enhanced),
    )


def enhanced_score(item: SourceItem, cand: CandidateTrack, ai_details: Optional[SongDetails] = None) -> int:
    return score_breakdown(item, cand, ai_details).enhanced_score


def basic_score(item: SourceItem, cand: CandidateTrack) -> int:
    """Fallback score in [0, 100] used when no AI details are available.

    Weights: title 0.25, artist 0.25, duration 0.40, release date 0.10.
    """
    title = source_title(item)
    artist = source_artist(item)
    score = (
        string_similarity(title, cand.name) * 0.25
        + string_similarity(artist, " ".join(cand.artists)) * 0.25
        + compare_durations(item.duration, cand.duration_ms) / 100 * 0.40
        + release_date_bonus(item.upload_date, cand.release_date) / 20 * 0.10
    )
    return min(100, round(score * 100))


def candidate_score(item: SourceItem, cand: CandidateTrack, ai_details: Optional[SongDetails] = None) -> float:
    """Title-first score: 0.5 title, 0.3 primary artist, 0.2 enhanced (or basic) score."""
    title = source_title(item, ai_details)
    artist = source_artist(item, ai_details)
    if ai_details is not None:
        extra = enhanced_score(item, cand, ai_details)
    else:
        extra = basic_score(item, cand)
    return (
        title_similarity(title, cand.name) * 0.5
        + compare_artists(artist, cand.primary_artist) * 0.3
        + extra * 0.2
    )


def select_best_match(
    item: SourceItem,
    candidates: List[CandidateTrack],
    ai_details: Optional[SongDetails] = None,
) -> Optional[MatchResult]:
    """Pick the highest-scoring candidate; on ties the earlier (more relevant) one wins."""
    best: Optional[CandidateTrack] = None
    best_score = -1.0
    for cand in candidates:
        score = candidate_score(item, cand, ai_details)
        if score > best_score:
            best, best_score = cand, score
    if best is None:
        return None
    confidence = int(max(0, min(100, round(best_score))))
    return MatchResult(candidate=best, confidence=confidence, breakdown=score_breakdown(item, best, ai_details))


def resolve_query(item: SourceItem, assist: Optional[AIAssist] = None) -> Tuple[str, str, Optional[SongDetails]]:
    """Work out the (title, artist) to search for, using the AI assist when it is confident.

    Returns the AI extraction as third element when it superseded the cleaner.
    """
    title = clean_title(item.title)
    artist = extract_artist(item.title) or channel_artist(item.artist)
    details: Optional[SongDetails] = None
    if assist is None or not assist.available:
        return title, artist, None

    try:
        extracted = assist.extract_song_details(item.title)
        if extracted.confidence > AI_EXTRACT_CONFIDENCE:
            details = extracted
            title = extracted.title
            artist = extracted.artist or artist
        else:
            analysis = assist.analyze_song_details(item.title, item.artist)
            if analysis.confidence > AI_ANALYZE_CONFIDENCE:
                title = analysis.extracted_title or title
                artist = analysis.extracted_artist or artist
        if not artist:
            artist = assist.extract_artist_name(item.title)
    except Exception as e:
        # any provider failure counts as "unavailable"
        logger.debug(f"AI assist unavailable for '{item.title}', using cleaned title: {e!r}")
    return title, artist, details


def search_track(item: SourceItem, catalog, assist: Optional[AIAssist] = None) -> MatchResult:
    """Search Spotify for one source item and return the best match.

    Title-only search first; when its winner is not above the acceptance
    threshold the search is widened to title+artist and the better of both
    kept. Raises NoCandidatesError when neither search returns anything.
    """
    title, artist, details = resolve_query(item, assist)
    if not title:
        raise NoCandidatesError(f"Nothing to search for '{item.title}'")

    best = select_best_match(item, catalog.search_by_title(title), details)
    if best and best.confidence > ACCEPT_CONFIDENCE:
        return best

    if artist:
        wider = select_best_match(item, catalog.search_by_title_and_artist(title, artist), details)
        if wider and (best is None or wider.confidence > best.confidence):
            best = wider

    if best is None:
        raise NoCandidatesError(f"No Spotify candidates for '{item.title}'")
    return best
