from __future__ import annotations

import re
import time
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_random_exponential

T = TypeVar("T")


def now_timestamp_str() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def chunked(seq: Sequence[T] | Iterable[T], n: int) -> Iterator[List[T]]:
    """Yield lists of size n from a sequence/iterable."""
    if n <= 0:
        raise ValueError("n must be > 0")
    buf: List[T] = []
    for item in seq:
        buf.append(item)
        if len(buf) >= n:
            yield buf
            buf = []
    if buf:
        yield buf


def format_duration(ms: int | None) -> str:
    if not ms or ms <= 0:
        return "--:--"
    s = ms // 1000
    m, s = divmod(s, 60)
    return f"{int(m):02d}:{int(s):02d}"


def duration_to_seconds(duration: str | None) -> int:
    """Convert "M:SS" or "H:MM:SS" to seconds; anything else is 0."""
    if not duration:
        return 0
    try:
        parts = [int(p) for p in duration.strip().split(":")]
    except ValueError:
        return 0
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    return 0


_date_re = re.compile(r"^(\d{4})(?:-(\d{1,2}))?(?:-(\d{1,2}))?")


def parse_date(value: str | None) -> Optional[date]:
    """Parse the leading calendar date of an ISO timestamp or a Spotify release date.

    Spotify release dates may be year-only ("2017") or year-month ("2017-03");
    missing parts default to 1.
    """
    if not value:
        return None
    m = _date_re.match(value.strip())
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2) or 1), int(m.group(3) or 1))
    except ValueError:
        return None


def months_between(a: date, b: date) -> int:
    return abs((a.year - b.year) * 12 + (a.month - b.month))


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def brief_id(s: str, prefix: int = 3, suffix: int = 2) -> str:
    if len(s) <= prefix + suffix + 3:
        return s
    return f"{s[:prefix]}...{s[-suffix:]}"


def _is_rate_limited_exception(e: BaseException) -> bool:
    return getattr(e, "http_status", None) == 429


def _retry_after_seconds(e: BaseException) -> int:
    try:
        headers = getattr(e, "headers", {}) or {}
        ra = int(headers.get("Retry-After", 1))
        return max(1, ra)
    except (TypeError, ValueError):
        return 1


@retry(
    reraise=True,
    retry=retry_if_exception(_is_rate_limited_exception),
    stop=stop_after_attempt(4),
    wait=wait_random_exponential(multiplier=1, max=10),
)
def call_spotify_with_retries(func, *args, **kwargs):
    """Call a read-only Spotify client method, backing off on 429 responses.

    If a 429 carries a Retry-After header, sleep that duration before the next
    attempt. Every other error, 5xx included, is raised immediately.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        if _is_rate_limited_exception(e):
            time.sleep(_retry_after_seconds(e) + 1)
        raise
