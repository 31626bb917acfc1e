from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import AIUnavailableError
from .types import SongAnalysis, SongDetails

logger = logging.getLogger("tunemigrate.ai")

_fence_re = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_object_re = re.compile(r"\{.*\}", re.DOTALL)

EXTRACT_PROMPT = """You are given the title of a YouTube music video.
Identify the song it contains and answer with a single JSON object:
{{"title": string, "artist": string, "features": [string], "isRemix": boolean, "confidence": integer 0-100}}
"title" must not contain the artist, featured artists or video labels.

Video title: {title}"""

ANALYZE_PROMPT = """Analyze this song and answer with a single JSON object:
{{"isRemix": boolean, "isCover": boolean, "isLive": boolean, "isAcoustic": boolean,
"extractedTitle": string, "extractedArtist": string, "confidence": integer 0-100}}

Title: {title}
Artist or channel: {artist}"""

ARTIST_PROMPT = """Extract the primary artist name from this song title.
Only return the artist name. If multiple artists, return the first/main artist.

Song Title: {title}
Artist Name:"""


class AIAssist:
    """Optional AI capability used to improve title/artist extraction.

    This base class is the "not configured" capability: every operation raises
    AIUnavailableError and the matching engine falls back to the regex cleaner.
    """

    available = False

    def extract_song_details(self, title: str) -> SongDetails:
        raise AIUnavailableError("AI assist not configured")

    def analyze_song_details(self, title: str, artist: str) -> SongAnalysis:
        raise AIUnavailableError("AI assist not configured")

    def extract_artist_name(self, title: str) -> str:
        raise AIUnavailableError("AI assist not configured")


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Pull a JSON object out of a completion that may wrap it in fences or prose."""
    if not text or not text.strip():
        raise AIUnavailableError("empty completion")
    m = _fence_re.search(text)
    body = m.group(1) if m else text
    m = _object_re.search(body)
    if not m:
        raise AIUnavailableError(f"no JSON object in completion: {text[:80]!r}")
    try:
        data = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise AIUnavailableError(f"malformed JSON in completion: {e}") from e
    if not isinstance(data, dict):
        raise AIUnavailableError("completion JSON is not an object")
    return data


def _as_confidence(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_features(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class CompletionAssist(AIAssist):
    """AI assist backed by any prompt -> text completion callable."""

    available = True

    def __init__(self, complete: Callable[[str], str]):
        self._complete = complete

    def _ask(self, prompt: str) -> str:
        try:
            return self._complete(prompt)
        except AIUnavailableError:
            raise
        except Exception as e:
            raise AIUnavailableError(f"completion failed: {e}") from e

    def extract_song_details(self, title: str) -> SongDetails:
        data = parse_json_reply(self._ask(EXTRACT_PROMPT.format(title=title)))
        details = SongDetails(
            title=_as_str(data.get("title")),
            artist=_as_str(data.get("artist")),
            features=_as_features(data.get("features")),
            is_remix=bool(data.get("isRemix", False)),
            confidence=_as_confidence(data.get("confidence")),
        )
        if not details.title:
            raise AIUnavailableError("completion did not include a title")
        logger.debug(f"AI extracted '{details.title}' by '{details.artist}' ({details.confidence}) from '{title}'")
        return details

    def analyze_song_details(self, title: str, artist: str) -> SongAnalysis:
        data = parse_json_reply(self._ask(ANALYZE_PROMPT.format(title=title, artist=artist)))
        return SongAnalysis(
            is_remix=bool(data.get("isRemix", False)),
            is_cover=bool(data.get("isCover", False)),
            is_live=bool(data.get("isLive", False)),
            is_acoustic=bool(data.get("isAcoustic", False)),
            extracted_title=_as_str(data.get("extractedTitle")),
            extracted_artist=_as_str(data.get("extractedArtist")),
            confidence=_as_confidence(data.get("confidence")),
        )

    def extract_artist_name(self, title: str) -> str:
        name = self._ask(ARTIST_PROMPT.format(title=title)).strip().strip('"').strip()
        if not name or len(name.split()) > 8:
            raise AIUnavailableError(f"unusable artist reply: {name[:80]!r}")
        return name


class HttpCompletionClient:
    """Minimal OpenAI-compatible chat-completions client."""

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1", model: str = "gpt-4o-mini", timeout: float = 20.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, prompt: str) -> str:
        try:
            resp = self.session.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": 0,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AIUnavailableError(f"AI request failed: {e}") from e
        if resp.status_code != 200:
            raise AIUnavailableError(f"AI request failed ({resp.status_code}): {resp.text[:200]}")
        try:
            return resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIUnavailableError(f"unexpected AI response: {e}") from e


def build_assist(api_key: Optional[str], base_url: Optional[str] = None, model: Optional[str] = None) -> AIAssist:
    if not api_key:
        return AIAssist()
    client = HttpCompletionClient(api_key, base_url=base_url or "https://api.openai.com/v1", model=model or "gpt-4o-mini")
    return CompletionAssist(client)
