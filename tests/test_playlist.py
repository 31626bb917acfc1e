import pytest

from tunemigrate.errors import AuthExpiredError, BatchAbortedError, CatalogError
from tunemigrate.playlist import (
    DEFAULT_DESCRIPTION,
    PlaylistAssembler,
    approve,
    is_included,
    replace,
    song_from_track,
)
from tunemigrate.types import CandidateTrack, PlaylistInfo, SourceItem


def track(title, artist="Band", tid=None):
    tid = tid or title.lower().replace(" ", "-")
    return CandidateTrack(id=tid, uri=f"spotify:track:{tid}", name=title, artists=[artist], duration_ms=200000)


class FakeCatalog:
    def __init__(self, failing=(), error=None, create_error=None):
        self.failing = set(failing)
        self.error = error or CatalogError(500, "boom")
        self.create_error = create_error
        self.searched = []
        self.created = []
        self.added = []
        self.validated = 0

    def _lookup(self, title):
        self.searched.append(title)
        if title in self.failing:
            raise self.error
        return [track(title)]

    def search_by_title(self, title):
        return self._lookup(title)

    def search_by_title_and_artist(self, title, artist):
        return self._lookup(title)

    def search_free_text(self, query):
        return [track(query)]

    def validate(self):
        self.validated += 1
        return {"id": "user1"}

    def create_playlist(self, name, description):
        if self.create_error:
            raise self.create_error
        self.created.append((name, description))
        return PlaylistInfo(id="pl1", url="https://open.spotify.com/playlist/pl1")

    def add_tracks(self, playlist_id, uris):
        self.added.append((playlist_id, list(uris)))


def songs(n):
    return [SourceItem(id=f"yt{i}", title=f"Song {i}", artist="Band", duration="3:20") for i in range(1, n + 1)]


def test_match_all_keeps_going_past_isolated_failures():
    items = songs(5)
    progress = []
    assembler = PlaylistAssembler(FakeCatalog(failing={"Song 3", "Song 4"}), pause=0)
    result = assembler.match_all(items, progress.append)

    assert result is items
    assert len(result) == 5
    assert [it.spotify_uri is not None for it in result] == [True, True, False, False, True]
    assert progress == [20, 40, 60, 80, 100]


def test_match_all_retries_failed_item_in_place():
    catalog = FakeCatalog(failing={"Song 2"})
    PlaylistAssembler(catalog, pause=0, max_attempts=2).match_all(songs(2))
    assert catalog.searched.count("Song 2") == 2


def test_match_all_aborts_after_consecutive_failures():
    items = songs(5)
    items[0].title = "Fine"
    progress = []
    catalog = FakeCatalog(failing={"Song 2", "Song 3", "Song 4", "Song 5"})
    with pytest.raises(BatchAbortedError) as exc:
        PlaylistAssembler(catalog, pause=0).match_all(items, progress.append)

    assert exc.value.failures == 3
    assert exc.value.items is items
    assert items[0].spotify_uri == "spotify:track:fine"
    assert "Song 5" not in catalog.searched
    assert progress == [20, 40, 60, 80]


def test_match_all_propagates_auth_expired():
    catalog = FakeCatalog(failing={"Song 1"}, error=AuthExpiredError())
    with pytest.raises(AuthExpiredError):
        PlaylistAssembler(catalog, pause=0).match_all(songs(3))
    assert catalog.searched == ["Song 1"]


def test_match_all_skips_unselected_and_already_matched():
    items = songs(3)
    items[0].selected = False
    replace(items[1], track("Picked", tid="picked"))
    catalog = FakeCatalog()
    PlaylistAssembler(catalog, pause=0).match_all(items, skip_matched=True)
    assert catalog.searched == ["Song 3"]
    assert items[1].spotify_uri == "spotify:track:picked"


def test_progress_callback_errors_are_ignored():
    def explode(percent):
        raise ValueError("ui went away")

    items = PlaylistAssembler(FakeCatalog(), pause=0).match_all(songs(2), explode)
    assert all(it.spotify_uri for it in items)


def test_match_all_with_nothing_selected():
    items = songs(2)
    for it in items:
        it.selected = False
    progress = []
    assert PlaylistAssembler(FakeCatalog(), pause=0).match_all(items, progress.append) is items
    assert progress == []


def test_create_from_songs_failure_adds_nothing():
    catalog = FakeCatalog(create_error=CatalogError(403, "forbidden"))
    with pytest.raises(CatalogError):
        PlaylistAssembler(catalog, pause=0).create_from_songs("Mix", None, songs(2))
    assert catalog.added == []


def test_create_from_songs_includes_approved_and_replaced():
    a, b, c, d, e, f = songs(6)
    for it, conf in ((a, 90), (b, 50), (c, 50), (e, 95)):
        it.spotify_uri = f"spotify:track:{it.id}"
        it.match_confidence = conf
    approve(c)
    replace(d, track("Other", tid="other"))
    e.selected = False

    catalog = FakeCatalog()
    result = PlaylistAssembler(catalog, pause=0).create_from_songs(
        "Mix", None, [a, b, c, d, e, f], min_confidence=70, match_remaining=False
    )

    assert catalog.validated == 1
    assert catalog.created == [("Mix", DEFAULT_DESCRIPTION)]
    assert catalog.added == [("pl1", ["spotify:track:yt1", "spotify:track:yt3", "spotify:track:other"])]
    assert result.playlist_url == "https://open.spotify.com/playlist/pl1"
    assert (result.matched_count, result.total_count) == (3, 5)
    assert catalog.searched == []


def test_create_from_songs_matches_remaining_items():
    items = songs(2)
    replace(items[0], track("Picked", tid="picked"))
    catalog = FakeCatalog()
    result = PlaylistAssembler(catalog, pause=0).create_from_songs("Mix", "desc", items)
    assert catalog.searched == ["Song 2"]
    assert catalog.created == [("Mix", "desc")]
    assert result.matched_count == 2


def test_create_from_songs_without_matches_skips_add():
    catalog = FakeCatalog(failing={"Song 1"}, error=CatalogError(None, "offline"))
    result = PlaylistAssembler(catalog, pause=0).create_from_songs("Mix", None, songs(1))
    assert catalog.added == []
    assert result.matched_count == 0
    assert result.total_count == 1


def test_is_included_rules():
    item = SourceItem(id="x", title="t", artist="a")
    assert not is_included(item)
    item.spotify_uri = "spotify:track:x"
    item.match_confidence = 60
    assert is_included(item, 50)
    assert not is_included(item, 70)
    approve(item)
    assert is_included(item, 70)
    item.selected = False
    assert not is_included(item, 0)


def test_replace_sets_full_confidence():
    item = SourceItem(id="x", title="t", artist="a")
    replace(item, track("New Song", artist="New Artist", tid="n"))
    assert item.spotify_uri == "spotify:track:n"
    assert item.spotify_artist == "New Artist"
    assert item.match_confidence == 100
    assert item.is_replacement


def test_song_from_track():
    cand = CandidateTrack(id="abc", uri="spotify:track:abc", name="Hello", artists=["Adele", "Guest"], duration_ms=295000)
    item = song_from_track(cand)
    assert item.id == "spotify-abc"
    assert item.title == "Hello"
    assert item.artist == "Adele, Guest"
    assert item.selected
    assert item.match_confidence == 100
    assert item.spotify_duration == "04:55"


def test_find_tracks_uses_free_text_search():
    cands = PlaylistAssembler(FakeCatalog(), pause=0).find_tracks("hello adele")
    assert cands[0].name == "hello adele"
