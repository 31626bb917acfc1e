from __future__ import annotations

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

from .utils import clamp, duration_to_seconds, months_between, parse_date

# Neutral scores when one side of a comparison is missing
NEUTRAL_DURATION = 50
NEUTRAL_DATE = 50
UNKNOWN_ARTIST = 30

_non_word_re = re.compile(r"[^\w\s]")
_artist_noise_re = re.compile(r"\b(?:official|music|vevo|channel|records|recordings)\b", re.IGNORECASE)
_artist_brackets_re = re.compile(r"\(.*?\)|\[.*?\]")
_artist_topic_re = re.compile(r"\s*-\s*topic\s*$", re.IGNORECASE)
_ws_re = re.compile(r"\s+")


def title_similarity(a: str, b: str) -> int:
    """Levenshtein similarity of two titles in [0, 100], case-insensitive.

    Callers are expected to pass already-cleaned titles.
    """
    a = (a or "").lower().strip()
    b = (b or "").lower().strip()
    if a == b:
        return 100
    if not a or not b:
        return 0
    distance = Levenshtein.distance(a, b)
    max_len = max(len(a), len(b))
    return int(clamp(round((1 - distance / max_len) * 100), 0, 100))


def _words(s: str, min_len: int = 3) -> list[str]:
    return [w for w in s.split() if len(w) >= min_len]


def _overlap_ratio(words_a: list[str], words_b: list[str]) -> float:
    if not words_a:
        return 0.0
    hits = sum(1 for wa in words_a if any(wb in wa or wa in wb for wb in words_b))
    return hits / len(words_a)


def string_similarity(a: str, b: str) -> float:
    """Coarse token-overlap similarity in [0, 1]."""
    na = _non_word_re.sub("", (a or "").lower()).strip()
    nb = _non_word_re.sub("", (b or "").lower()).strip()
    if na == nb:
        return 1.0
    if not na or not nb:
        return 0.0
    if na in nb or nb in na:
        return min(len(na), len(nb)) / max(len(na), len(nb))
    return _overlap_ratio(_words(na), _words(nb))


def normalize_artist(name: str) -> str:
    s = (name or "").lower()
    s = _artist_topic_re.sub("", s)
    s = _artist_brackets_re.sub("", s)
    s = _artist_noise_re.sub("", s)
    return _ws_re.sub(" ", s).strip()


def compare_artists(source: str, candidate: str) -> int:
    """Compare a YouTube channel/artist label with a Spotify artist name.

    The uploader is often not the artist, so "Official", "VEVO", "Records" and
    similar channel words are ignored.
    """
    ns = normalize_artist(source)
    nc = normalize_artist(candidate)
    if not ns or not nc:
        return UNKNOWN_ARTIST
    if ns == nc:
        return 100
    if ns in nc or nc in ns:
        return 80
    source_words = _words(ns)
    if not source_words:
        return UNKNOWN_ARTIST
    return int(min(100, round(_overlap_ratio(source_words, _words(nc)) * 100)))


def compare_durations(source_duration: Optional[str], candidate_ms: Optional[int]) -> float:
    """Score duration closeness in [0, 100].

    <=10s: 100, <=20s: 100 down to 80, <=60s: 80 down to 40, <=120s: 20, else 0.
    """
    source_seconds = duration_to_seconds(source_duration)
    if not source_seconds or not candidate_ms:
        return NEUTRAL_DURATION
    delta = abs(source_seconds - candidate_ms / 1000)
    if delta <= 10:
        return 100.0
    if delta <= 20:
        return 100 - (delta - 10) * 2
    if delta <= 60:
        # 80 is held through 21s, then falls linearly to 40 at 60s
        return min(80.0, 80 - (delta - 21) * 40 / 39)
    if delta <= 120:
        return 20.0
    return 0.0


def compare_release_dates(upload_date: Optional[str], release_date: Optional[str]) -> int:
    """Day-bucketed date proximity in [20, 100]; 50 when either date is missing."""
    upload = parse_date(upload_date)
    release = parse_date(release_date)
    if not upload or not release:
        return NEUTRAL_DATE
    days = abs((upload - release).days)
    if days <= 7:
        return 100
    if days <= 30:
        return 80
    if days <= 90:
        return 60
    if days <= 365:
        return 40
    return 20


def release_date_bonus(upload_date: Optional[str], release_date: Optional[str]) -> int:
    """Month-bucketed bonus in {0, 10, 20}; no bonus when either date is missing."""
    upload = parse_date(upload_date)
    release = parse_date(release_date)
    if not upload or not release:
        return 0
    months = months_between(upload, release)
    if months <= 3:
        return 20
    if months <= 12:
        return 10
    return 0
