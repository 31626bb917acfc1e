from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .types import LOW_CONFIDENCE, MATCHED, NOT_FOUND, SKIPPED, SourceItem
from .utils import ensure_dir, now_timestamp_str

FIELDNAMES = [
    "id",
    "title",
    "artist",
    "duration",
    "decision",
    "confidence",
    "spotify_title",
    "spotify_artist",
    "uri",
]


def setup_logging(logs_dir: Path = Path("logs"), verbose: bool = False) -> tuple[logging.Logger, Path]:
    """Initialize logging to console (INFO) and file per run.

    Returns (logger, log_file_path)
    """
    ts = now_timestamp_str()
    ensure_dir(logs_dir)
    log_path = logs_dir / f"tunemigrate-{ts}.log"

    logger = logging.getLogger("tunemigrate")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(logging.Formatter("%(levelname)s | %(message)s"))
    logger.addHandler(ch)

    # File handler
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(fh)

    logger.debug("Logging initialized")
    return logger, log_path


def init_summaries(reports_dir: Path = Path("reports")) -> tuple[Path, Path]:
    ts = now_timestamp_str()
    ensure_dir(reports_dir)
    csv_path = reports_dir / f"summary-{ts}.csv"
    json_path = reports_dir / f"summary-{ts}.json"
    csv_path.touch()
    json_path.touch()
    return csv_path, json_path


def decision_for(item: SourceItem, min_confidence: int = 0) -> str:
    if not item.selected:
        return SKIPPED
    if not item.spotify_uri:
        return NOT_FOUND
    if item.manually_approved or item.is_replacement:
        return MATCHED
    if (item.match_confidence or 0) < min_confidence:
        return LOW_CONFIDENCE
    return MATCHED


def summary_row(item: SourceItem, min_confidence: int = 0) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "artist": item.artist,
        "duration": item.duration,
        "decision": decision_for(item, min_confidence),
        "confidence": item.match_confidence,
        "spotify_title": item.spotify_title,
        "spotify_artist": item.spotify_artist,
        "uri": item.spotify_uri,
    }


def _csv_write_header_if_empty(csv_path: Path, fieldnames: list[str]) -> None:
    if csv_path.stat().st_size == 0:
        with csv_path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()


def write_summary_row(csv_path: Path, json_path: Path, row: Dict[str, Any]) -> None:
    """Append a row to CSV, and JSON as NDJSON (one JSON per line)."""
    _csv_write_header_if_empty(csv_path, FIELDNAMES)
    with csv_path.open("a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writerow({k: row.get(k) for k in FIELDNAMES})
    with json_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False) + "\n")


def write_summary(items, reports_dir: Optional[Path] = None, min_confidence: int = 0) -> tuple[Path, Path]:
    csv_path, json_path = init_summaries(reports_dir or Path("reports"))
    for item in items:
        write_summary_row(csv_path, json_path, summary_row(item, min_confidence))
    return csv_path, json_path
