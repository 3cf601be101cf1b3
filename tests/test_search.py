"""
Tests for client-side track search (echoplay.core.library.filter_tracks).
"""

import pytest

from echoplay.core.library import filter_tracks
from echoplay.core.models import Track

SUN = Track(id="1", title="Sun", artist="Ray")
MOON = Track(id="2", title="Moon", artist="Lux")
UNTITLED = Track(id="3", title=None, artist=None)


class TestFilterTracks:
    """Tests for title/artist substring filtering."""

    def test_matches_artist(self) -> None:
        """'ra' matches the artist 'Ray' but nothing in 'Moon'/'Lux'."""
        assert filter_tracks([SUN, MOON], "ra") == (SUN,)

    def test_matches_title(self) -> None:
        assert filter_tracks([SUN, MOON], "oo") == (MOON,)

    def test_case_insensitive(self) -> None:
        assert filter_tracks([SUN, MOON], "SUN") == (SUN,)
        assert filter_tracks([SUN, MOON], "lUx") == (MOON,)

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_empty_query_returns_everything(self, query) -> None:
        assert filter_tracks([SUN, MOON, UNTITLED], query) == (SUN, MOON, UNTITLED)

    def test_no_match(self) -> None:
        assert filter_tracks([SUN, MOON], "zebra") == ()

    def test_missing_fields_never_match(self) -> None:
        """A track without title/artist is excluded rather than raising."""
        assert filter_tracks([UNTITLED, SUN], "sun") == (SUN,)
        assert filter_tracks([UNTITLED], "none") == ()

    def test_preserves_order(self) -> None:
        a = Track(id="a", title="Radio", artist="X")
        b = Track(id="b", title="Y", artist="Rain")
        assert filter_tracks([b, MOON, a], "ra") == (b, a)

    def test_every_title_and_artist_substring_matches(self) -> None:
        for track in (SUN, MOON):
            for text in (track.title, track.artist):
                for start in range(len(text)):
                    for end in range(start + 1, len(text) + 1):
                        assert track in filter_tracks([SUN, MOON], text[start:end])
