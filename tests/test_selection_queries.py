"""Tests for the derived selection views."""

from kyara.domain.entities import AnimeCacheEntry, AnimeSelectionStatus, CharacterRef
from kyara.services import selection_queries as q


def _entry(anime_id: int, title: str, *ids: int) -> AnimeCacheEntry:
    return AnimeCacheEntry(
        id=anime_id,
        title=title,
        roster=tuple(CharacterRef(id=i, name=f"c{i}") for i in ids),
    )


class TestIsAnimeSelected:
    def test_any_member_selected(self, frieren_entry: AnimeCacheEntry) -> None:
        """One selected roster member marks the anime as selected."""
        assert q.is_anime_selected({2}, {42: frieren_entry}, 42) is True
        assert q.is_anime_selected({9}, {42: frieren_entry}, 42) is False

    def test_unknown_or_empty_roster(self) -> None:
        """Missing entries and empty rosters are never selected."""
        assert q.is_anime_selected({1}, {}, 42) is False
        assert q.is_anime_selected({1}, {42: _entry(42, "Empty")}, 42) is False

    def test_not_ready(self, frieren_entry: AnimeCacheEntry) -> None:
        """Nothing is selected while the state is not ready."""
        assert q.is_anime_selected({1}, {42: frieren_entry}, 42, ready=False) is False


class TestSelectionStatus:
    def test_none_partial_full(self, frieren_entry: AnimeCacheEntry) -> None:
        """Status follows how much of the roster is selected."""
        cache = {42: frieren_entry}

        assert q.anime_selection_status(set(), cache, 42) is AnimeSelectionStatus.NONE
        assert q.anime_selection_status({1}, cache, 42) is AnimeSelectionStatus.PARTIAL
        assert q.anime_selection_status({1, 2, 3, 99}, cache, 42) is AnimeSelectionStatus.FULL
        assert q.selected_count({1, 3}, frieren_entry) == 2


class TestListViews:
    def test_selected_animes_sorted_by_title(self) -> None:
        """Selected animes come back sorted case-insensitively by title."""
        cache = {
            1: _entry(1, "bleach", 10),
            2: _entry(2, "Akira", 20),
            3: _entry(3, "Cowboy Bebop", 30),
        }

        result = q.selected_animes({10, 20}, cache)

        assert [e.id for e in result] == [2, 1]

    def test_game_pool_dedupes_shared_characters(self) -> None:
        """A character listed by two animes appears once, under the lower anime id."""
        cache = {
            8: _entry(8, "Sequel", 1, 5),
            3: _entry(3, "Original", 1, 2),
        }

        pool = q.game_character_pool({1, 2, 5, 77}, cache)

        assert [(c.id, c.anime_id) for c in pool] == [(1, 3), (2, 3), (5, 8)]
        assert pool[0].anime_title == "Original"

    def test_detailed_roster_of_unknown_anime(self, frieren_entry: AnimeCacheEntry) -> None:
        """Unknown animes have an empty detailed roster."""
        assert q.detailed_roster({}, 42) == []
        assert [c.anime_title for c in q.detailed_roster({42: frieren_entry}, 42)] == ["Frieren"] * 3
