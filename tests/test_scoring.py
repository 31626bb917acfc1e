import pytest

from tunemigrate.catalog import candidate_from_item
from tunemigrate.errors import AIUnavailableError, NoCandidatesError
from tunemigrate.matcher import (
    basic_score,
    resolve_query,
    score_breakdown,
    search_track,
    select_best_match,
)
from tunemigrate.ai import AIAssist
from tunemigrate.types import CandidateTrack, SongAnalysis, SongDetails, SourceItem


def song(title="Shape of You (Official Video)", artist="Ed Sheeran", duration="3:53", upload_date=None):
    return SourceItem(id="yt1", title=title, artist=artist, duration=duration, upload_date=upload_date)


def shape_of_you_candidates():
    items = [
        {
            "id": "t1",
            "uri": "spotify:track:t1",
            "name": "Shape of You",
            "artists": [{"name": "Ed Sheeran"}],
            "duration_ms": 233713,
            "popularity": 85,
        },
        {
            "id": "t2",
            "uri": "spotify:track:t2",
            "name": "Shape of You - Remix",
            "artists": [{"name": "Ed Sheeran"}],
            "duration_ms": 200000,
            "popularity": 40,
        },
    ]
    return [candidate_from_item(it) for it in items]


def test_select_best_match_empty_returns_none():
    assert select_best_match(song(), []) is None


def test_select_prefers_original_over_remix():
    best = select_best_match(song(), shape_of_you_candidates())
    assert best is not None
    assert best.candidate.uri == "spotify:track:t1"
    assert best.confidence >= 85
    assert best.tier == "high"


def test_select_prefers_original_with_ai_details():
    details = SongDetails(title="Shape of You", artist="Ed Sheeran", confidence=95)
    best = select_best_match(song(), shape_of_you_candidates(), details)
    assert best.candidate.uri == "spotify:track:t1"
    assert best.confidence >= 85
    assert best.breakdown.enhanced_score == 100


def test_ties_keep_first_candidate():
    a = CandidateTrack(id="a", uri="u:a", name="Song", artists=["Band"], duration_ms=200000)
    b = CandidateTrack(id="b", uri="u:b", name="Song", artists=["Band"], duration_ms=200000)
    best = select_best_match(song(title="Song", artist="Band", duration="3:20"), [a, b])
    assert best.candidate.uri == "u:a"


def test_score_breakdown_bonuses():
    item = song(title="Adele - Hello (Official Video)", artist="AdeleVEVO", duration="4:55", upload_date="2015-10-22")
    cand = CandidateTrack(
        id="h",
        uri="u:h",
        name="Hello",
        artists=["Adele"],
        album="25",
        release_date="2015-11-20",
        duration_ms=295000,
        popularity=80,
    )
    b = score_breakdown(item, cand)
    assert b.artist_match == 100
    assert b.title_match == 100
    assert b.duration_match == 100
    assert b.date_match == 80
    # 30 + 30 + 35 + 4
    assert b.total_score == 99
    assert b.enhanced_score == 100
    assert b.tier == "high"


def test_score_breakdown_penalizes_version_mismatch():
    item = song(title="Hello (Live at the BBC)", artist="Adele", duration="4:55")
    studio = CandidateTrack(id="s", uri="u:s", name="Hello", artists=["Other"], duration_ms=295000)
    live = CandidateTrack(id="l", uri="u:l", name="Hello - Live at the BBC", artists=["Other"], duration_ms=295000)
    assert score_breakdown(item, live).enhanced_score > score_breakdown(item, studio).enhanced_score
    assert score_breakdown(item, studio).enhanced_score - score_breakdown(item, studio).total_score == 15


def test_basic_score_weights():
    item = song(title="Song", artist="Band", duration="3:20", upload_date="2020-01-10")
    cand = CandidateTrack(id="x", uri="u:x", name="Song", artists=["Band"], release_date="2020-02-01", duration_ms=200000)
    assert basic_score(item, cand) == 100

    far = CandidateTrack(id="y", uri="u:y", name="Song", artists=["Band"], release_date="2010-01-01", duration_ms=200000)
    assert basic_score(item, far) == 90


class FakeCatalog:
    def __init__(self, by_title=None, by_title_artist=None):
        self.by_title = by_title or []
        self.by_title_artist = by_title_artist or []
        self.queries = []

    def search_by_title(self, title):
        self.queries.append(("title", title))
        return list(self.by_title)

    def search_by_title_and_artist(self, title, artist):
        self.queries.append(("title+artist", title, artist))
        return list(self.by_title_artist)


def test_search_track_accepts_confident_title_match():
    catalog = FakeCatalog(by_title=shape_of_you_candidates())
    result = search_track(song(), catalog)
    assert result.candidate.id == "t1"
    assert catalog.queries == [("title", "Shape of You")]


def test_search_track_widens_when_title_match_is_weak():
    weak = CandidateTrack(id="w", uri="u:w", name="Something Else Entirely", artists=["Nobody"], duration_ms=100000)
    catalog = FakeCatalog(by_title=[weak], by_title_artist=shape_of_you_candidates())
    result = search_track(song(), catalog)
    assert result.candidate.id == "t1"
    assert catalog.queries[1] == ("title+artist", "Shape of You", "Ed Sheeran")


def test_search_track_keeps_weak_match_when_widening_finds_nothing():
    weak = CandidateTrack(id="w", uri="u:w", name="Something Else Entirely", artists=["Nobody"], duration_ms=100000)
    result = search_track(song(), FakeCatalog(by_title=[weak]))
    assert result.candidate.id == "w"
    assert result.tier == "low"


def test_search_track_no_candidates():
    with pytest.raises(NoCandidatesError):
        search_track(song(), FakeCatalog())


class ScriptedAssist(AIAssist):
    available = True

    def __init__(self, details=None, analysis=None, fail=False):
        self.details = details
        self.analysis = analysis
        self.fail = fail

    def extract_song_details(self, title):
        if self.fail:
            raise AIUnavailableError("down")
        return self.details

    def analyze_song_details(self, title, artist):
        return self.analysis

    def extract_artist_name(self, title):
        return "Guessed Artist"


def test_resolve_query_without_assist_uses_cleaner():
    title, artist, details = resolve_query(song())
    assert (title, artist, details) == ("Shape of You", "Ed Sheeran", None)


def test_resolve_query_uses_confident_ai_extraction():
    ai = SongDetails(title="Shape Of You", artist="Ed Sheeran", features=[], confidence=90)
    title, artist, details = resolve_query(song(title="ed sheeran shape of you HQ audio"), ScriptedAssist(details=ai))
    assert title == "Shape Of You"
    assert artist == "Ed Sheeran"
    assert details is ai


def test_resolve_query_falls_back_to_analysis():
    low = SongDetails(title="?", artist="?", confidence=40)
    analysis = SongAnalysis(extracted_title="Shape of You", extracted_artist="Ed Sheeran", confidence=80)
    title, artist, details = resolve_query(song(title="weird upload"), ScriptedAssist(details=low, analysis=analysis))
    assert (title, artist, details) == ("Shape of You", "Ed Sheeran", None)


def test_resolve_query_survives_ai_failure():
    title, artist, details = resolve_query(song(), ScriptedAssist(fail=True))
    assert (title, artist, details) == ("Shape of You", "Ed Sheeran", None)


def test_resolve_query_asks_ai_for_unknown_artist():
    low = SongDetails(title="?", artist="?", confidence=10)
    analysis = SongAnalysis(confidence=10)
    _, artist, _ = resolve_query(song(artist=""), ScriptedAssist(details=low, analysis=analysis))
    assert artist == "Guessed Artist"


class BrokenAssist(AIAssist):
    available = True

    def extract_song_details(self, title):
        raise ValueError("provider sdk exploded")


class SilentAssist(AIAssist):
    available = True

    def extract_song_details(self, title):
        return None


@pytest.mark.parametrize("assist", [BrokenAssist(), SilentAssist()])
def test_resolve_query_treats_any_ai_failure_as_unavailable(assist):
    assert resolve_query(song(), assist) == ("Shape of You", "Ed Sheeran", None)


def test_search_track_survives_misbehaving_assist():
    catalog = FakeCatalog(by_title=shape_of_you_candidates())
    result = search_track(song(), catalog, BrokenAssist())
    assert result.candidate.id == "t1"


def test_featured_artists_credited_on_candidate_add_bonus():
    item = song(title="Nice For What (Live)", artist="Random Uploads", duration=None)
    cand = CandidateTrack(id="n", uri="u:n", name="Nice For What", artists=["Other", "Stormzy"])
    plain = SongDetails(title="Nice For What", artist="Drake", confidence=90)
    featured = SongDetails(title="Nice For What", artist="Drake", features=["Stormzy"], confidence=90)
    uncredited = SongDetails(title="Nice For What", artist="Drake", features=["Nobody"], confidence=90)

    base = score_breakdown(item, cand, plain)
    assert base.enhanced_score < 95
    assert score_breakdown(item, cand, featured).total_score == base.total_score
    assert score_breakdown(item, cand, featured).enhanced_score == base.enhanced_score + 5
    assert score_breakdown(item, cand, uncredited).enhanced_score == base.enhanced_score
