from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from .ai import build_assist
from .auth import login, make_refresher
from .catalog import SpotifyCatalog
from .config import load_settings
from .errors import BatchAbortedError, TuneMigrateError
from .log_utils import decision_for, setup_logging, write_summary
from .playlist import PlaylistAssembler, approve, replace
from .types import CandidateTrack, LOW_CONFIDENCE, NOT_FOUND, SourceItem, confidence_tier
from .utils import format_duration
from .youtube import YouTubePlaylistSource, load_items

console = Console()

_tier_style = {"high": "green", "medium": "yellow", "low": "red"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="tunemigrate",
        description="Convert a YouTube playlist into a private Spotify playlist",
    )
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--playlist-url", help="YouTube playlist URL")
    src.add_argument("--input", help="JSON file with the songs to convert")
    p.add_argument("--name", default=None, help="Spotify playlist name (defaults to the YouTube playlist title)")
    p.add_argument("--description", default=None)
    p.add_argument("--min-confidence", type=int, default=0, help="Leave out matches below this confidence unless approved")
    p.add_argument("--review", action="store_true", help="Review unmatched and low-confidence songs before creating")
    p.add_argument("--dry-run", action="store_true", help="Match only, do not create a playlist")
    p.add_argument("--no-ai", action="store_true", help="Do not use the AI assist even if AI_API_KEY is set")
    p.add_argument("--report", action="store_true", help="Write CSV/NDJSON match reports under reports/")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def print_matches(items: List[SourceItem], min_confidence: int = 0) -> None:
    table = Table(title="Matches", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("YouTube")
    table.add_column("Spotify")
    table.add_column("Duration", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Decision")

    for i, it in enumerate(items, 1):
        if it.match_confidence is not None:
            tier = confidence_tier(it.match_confidence)
            score = f"[{_tier_style[tier]}]{it.match_confidence}%[/{_tier_style[tier]}]"
        else:
            score = "-"
        spotify = f'"{it.spotify_title}" — {it.spotify_artist}' if it.spotify_uri else ""
        table.add_row(
            str(i),
            f"{it.title} ({it.artist})",
            spotify,
            f"{it.duration or '--:--'} / {it.spotify_duration or '--:--'}",
            score,
            decision_for(it, min_confidence),
        )
    console.print(table)


def _print_candidates(cands: List[CandidateTrack]) -> None:
    table = Table(title="Candidates", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Title — Artist")
    table.add_column("Album")
    table.add_column("Duration")
    table.add_column("URI")
    for i, c in enumerate(cands, 1):
        table.add_row(str(i), f'"{c.name}" — {c.artist_names}', c.album, format_duration(c.duration_ms), c.uri)
    console.print(table)


def review_items(assembler: PlaylistAssembler, items: List[SourceItem], min_confidence: int) -> None:
    """Prompt for every selected item that would be left out of the playlist."""
    for item in items:
        if decision_for(item, min_confidence) not in {NOT_FOUND, LOW_CONFIDENCE}:
            continue
        console.print(f"\n[bold]{item.title}[/bold] ({item.artist})")
        if item.spotify_uri:
            console.print(f'Current match: "{item.spotify_title}" — {item.spotify_artist} ({item.match_confidence}%)')
        while True:
            choice = input("[a]pprove, [r]eplace, [d]rop, [k]eep as is > ").strip().lower()
            if choice in {"k", ""}:
                break
            if choice == "d":
                item.selected = False
                break
            if choice == "a":
                if not item.spotify_uri:
                    print("Nothing to approve: search a replacement instead.")
                    continue
                approve(item)
                break
            if choice == "r":
                query = input("Search Spotify: ").strip()
                if not query:
                    continue
                cands = assembler.find_tracks(query)
                if not cands:
                    print("No matching songs found.")
                    continue
                _print_candidates(cands)
                pick = input(f"[1-{len(cands)}] or empty to cancel > ").strip()
                if pick.isdigit() and 1 <= int(pick) <= len(cands):
                    replace(item, cands[int(pick) - 1])
                    break
                continue
            print("Invalid choice.")


def run(args: argparse.Namespace) -> int:
    logger, log_path = setup_logging(verbose=args.verbose)
    settings = load_settings()

    if args.playlist_url:
        settings.require("youtube_api_key")
        title, items = YouTubePlaylistSource(settings.youtube_api_key).extract(args.playlist_url)
    else:
        title, items = load_items(args.input)
    name = args.name or title or "TuneMigrate playlist"
    logger.info(f"{len(items)} songs loaded from '{title or args.input}'")

    credential = login(settings)
    refresher = make_refresher(settings) if settings.spotify_client_id and settings.spotify_redirect_uri else None
    catalog = SpotifyCatalog(credential, refresher=refresher)
    me = catalog.validate()
    console.print(f"✔ Connected as {me.get('display_name') or me.get('id')}")

    assist = None if args.no_ai else build_assist(settings.ai_api_key, settings.ai_base_url, settings.ai_model)
    assembler = PlaylistAssembler(catalog, assist=assist, pause=settings.request_pause)

    with tqdm(total=100, desc="Matching", unit="%") as bar:
        def _progress(percent: int) -> None:
            bar.update(percent - bar.n)

        try:
            assembler.match_all(items, _progress)
        except BatchAbortedError as e:
            console.print(f"[red]{e}[/red]")
            console.print("[yellow]Matches found so far are kept.[/yellow]")

    print_matches(items, args.min_confidence)
    if args.review:
        review_items(assembler, items, args.min_confidence)

    try:
        if args.dry_run:
            console.print("[bold yellow]DRY-RUN: no playlist created[/bold yellow]")
            return 0
        result = assembler.create_from_songs(
            name, args.description, items, min_confidence=args.min_confidence, match_remaining=False
        )
        console.print(f"[green]Playlist created:[/green] {result.playlist_url}")
        console.print(f"{result.matched_count}/{result.total_count} songs added")
        return 0
    finally:
        if args.report:
            csv_path, json_path = write_summary(items, min_confidence=args.min_confidence)
            console.print(f"CSV: {csv_path}")
            console.print(f"JSON: {json_path}")
        console.print(f"Log: {log_path}")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        code = run(args)
    except (TuneMigrateError, RuntimeError) as e:
        console.print(f"[red]{e}[/red]")
        code = 1
    except KeyboardInterrupt:
        console.print("Interrupted.")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
