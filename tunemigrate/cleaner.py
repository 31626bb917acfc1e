from __future__ import annotations

import re

from .types import SpecialVersion


# "Channel - Song Title"
_prefix_re = re.compile(r"^(.+?)\s*-\s*(.+)$")
_by_artist_re = re.compile(r"\bby\s+([^()\[\]]+)", re.IGNORECASE)

_descriptor_re = re.compile(
    r"[\(\[]\s*(?:"
    r"official\s+(?:music\s+|lyric\s+|performance\s+)?(?:video|audio)"
    r"|lyrics?\s*/\s*lyric\s+video"
    r"|lyric\s+video"
    r"|with\s+lyrics"
    r"|lyrics?"
    r"|audio"
    r"|visualizer"
    r")\s*[\)\]]",
    re.IGNORECASE,
)
_feat_tag_re = re.compile(r"[\(\[]\s*(?:ft|feat)\..*?[\)\]]", re.IGNORECASE)
_pipe_official_re = re.compile(r"\|\s*[A-Za-z0-9\s]+\s*Official", re.IGNORECASE)
_vevo_re = re.compile(r"vevo", re.IGNORECASE)
_loose_feat_re = re.compile(r"\s+(?:ft|feat)\.", re.IGNORECASE)
_quality_re = re.compile(r"\b(?:HD|HQ|4K|8K|1080p|720p)\b", re.IGNORECASE)
_year_re = re.compile(r"\(\d{4}\)|\[\d{4}\]")
_premiere_re = re.compile(r"\b(?:premiere|release)\b", re.IGNORECASE)
_symbols_re = re.compile(r"[^\w\s()\[\]\-&']")
_empty_brackets_re = re.compile(r"\(\s*\)|\[\s*\]")
_ws_re = re.compile(r"\s+")

_live_re = re.compile(r"\b(?:live|concert|performance|unplugged|session)\b", re.IGNORECASE)
_remix_re = re.compile(r"\b(?:remix|edit|flip|mashup|rework)\b", re.IGNORECASE)
_cover_re = re.compile(r"\b(?:cover|tribute|version by|performed by)\b", re.IGNORECASE)
_acoustic_re = re.compile(r"\b(?:acoustic|stripped|piano|unplugged)\b", re.IGNORECASE)

_topic_suffix_re = re.compile(r"\s*-\s*topic\s*$", re.IGNORECASE)
_vevo_suffix_re = re.compile(r"vevo\s*$", re.IGNORECASE)
_official_re = re.compile(r"\bofficial\b", re.IGNORECASE)

MAX_PREFIX_WORDS = 5


def _looks_like_prefix(text: str) -> bool:
    """A dash prefix is a channel/artist name only if short and bracket-free."""
    return len(text.split()) <= MAX_PREFIX_WORDS and "(" not in text and "[" not in text


def clean_title(title: str) -> str:
    """Strip YouTube noise from a video title so it can be used as a search query.

    Removes a leading "Channel - " prefix, official video/audio/lyrics tags,
    featuring mentions, VEVO, quality markers, years and premiere labels.
    """
    if not title:
        return ""
    t = title
    m = _prefix_re.match(t)
    if m and _looks_like_prefix(m.group(1).strip()):
        t = m.group(2).strip()

    t = _descriptor_re.sub("", t)
    t = _feat_tag_re.sub("", t)
    t = _pipe_official_re.sub("", t)
    t = _vevo_re.sub("", t)
    t = _loose_feat_re.sub("", t)
    t = _quality_re.sub("", t)
    t = _year_re.sub("", t)
    t = _premiere_re.sub("", t)
    t = _symbols_re.sub(" ", t)
    t = _empty_brackets_re.sub("", t)
    t = _ws_re.sub(" ", t).strip()
    return t.strip(" -")


def extract_artist(title: str) -> str:
    """Guess the artist from a video title; "" means unknown."""
    if not title:
        return ""
    m = _prefix_re.match(title)
    if m:
        candidate = m.group(1).strip()
        if _looks_like_prefix(candidate):
            return candidate
    m = _by_artist_re.search(title)
    if m:
        return m.group(1).strip()
    return ""


def extract_song_title(title: str, artist: str) -> str:
    if artist:
        title = re.sub(rf"^{re.escape(artist)}\s*-\s*", "", title, flags=re.IGNORECASE)
    return clean_title(title)


def channel_artist(label: str) -> str:
    """Reduce a channel label such as "Ed Sheeran - Topic" or "EdSheeranVEVO" to the artist."""
    if not label:
        return ""
    s = _topic_suffix_re.sub("", label)
    s = _vevo_suffix_re.sub("", s)
    s = _official_re.sub("", s)
    return _ws_re.sub(" ", s).strip()


def detect_special_version(title: str) -> SpecialVersion:
    t = title or ""
    return SpecialVersion(
        is_live=bool(_live_re.search(t)),
        is_remix=bool(_remix_re.search(t)),
        is_cover=bool(_cover_re.search(t)),
        is_acoustic=bool(_acoustic_re.search(t)),
    )
