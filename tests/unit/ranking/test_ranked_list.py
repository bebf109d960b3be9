"""Tests for RankedList structural mutations."""

import pytest

from cinerank.exceptions import (
    DuplicateTitleError,
    InvalidPositionError,
    InvalidTierError,
    MediaTypeMismatchError,
    NotFoundError,
)
from cinerank.ranking import MediaType, RankedList, SentimentTier, Title

FINE = SentimentTier.FINE
LIKED = SentimentTier.LIKED


def _scores(ranked_list: RankedList, tier: SentimentTier) -> list[float | None]:
    return [title.score for title in ranked_list.tier_members(tier)]


class TestInsert:
    def test_insert_into_empty_tier(self, ranked_list, make_title):
        title = make_title("Heat", LIKED)

        changes = ranked_list.insert(title, LIKED, 0)

        assert ranked_list.tier_members(LIKED) == (title,)
        assert title.score == pytest.approx(8.45)
        assert len(changes) == 1
        assert changes[0].is_first_score

    def test_insert_rescores_whole_tier(self, ranked_list, make_title):
        first, second, third = make_title("T1"), make_title("T2"), make_title("T3")
        ranked_list.insert(first, FINE, 0)
        ranked_list.insert(second, FINE, 1)
        ranked_list.insert(third, FINE, 0)

        assert ranked_list.tier_members(FINE) == (third, first, second)
        assert _scores(ranked_list, FINE) == [6.9, 5.45, 4.0]

    def test_position_resolver_sees_current_members(self, ranked_list, make_title):
        ranked_list.insert(make_title("A"), FINE, 0)
        seen = []

        def resolver(members):
            seen.append(members)
            return len(members)

        newcomer = make_title("B")
        ranked_list.insert(newcomer, FINE, resolver)

        assert [title.display_title for title in seen[0]] == ["A"]
        assert ranked_list.position_of(newcomer.title_id) == 1

    def test_tier_mismatch_is_rejected(self, ranked_list, make_title):
        title = make_title("Heat", LIKED)

        with pytest.raises(InvalidTierError) as excinfo:
            ranked_list.insert(title, FINE, 0)

        assert excinfo.value.declared == "liked"
        assert excinfo.value.target == "fine"
        assert title.title_id not in ranked_list

    def test_duplicate_id_is_rejected(self, ranked_list, make_title):
        title = make_title("Heat")
        ranked_list.insert(title, FINE, 0)

        with pytest.raises(DuplicateTitleError):
            ranked_list.insert(title, FINE, 0)

    def test_duplicate_catalog_id_is_rejected(self, ranked_list, make_title):
        ranked_list.insert(make_title("Heat", catalog_id="tmdb:949"), FINE, 0)
        version = ranked_list.tier_version(FINE)

        with pytest.raises(DuplicateTitleError, match="tmdb:949"):
            ranked_list.insert(make_title("Heat (again)", catalog_id="tmdb:949"), FINE, 0)

        assert len(ranked_list) == 1
        assert ranked_list.tier_version(FINE) == version

    def test_media_type_mismatch_is_rejected(self, ranked_list, make_title):
        show = make_title("The Wire", media_type=MediaType.TV)

        with pytest.raises(MediaTypeMismatchError):
            ranked_list.insert(show, FINE, 0)

    @pytest.mark.parametrize("index", [-1, 2])
    def test_out_of_range_position_is_rejected(self, ranked_list, make_title, index):
        ranked_list.insert(make_title("A"), FINE, 0)

        with pytest.raises(InvalidPositionError):
            ranked_list.insert(make_title("B"), FINE, index)

        assert len(ranked_list) == 1

    def test_insert_bumps_only_that_tier_version(self, ranked_list, make_title):
        ranked_list.insert(make_title("A"), FINE, 0)

        assert ranked_list.tier_version(FINE) == 1
        assert ranked_list.tier_version(LIKED) == 0


class TestRemove:
    def test_remove_rescores_vacated_tier(self, ranked_list, make_title):
        titles = [make_title(name) for name in ("A", "B", "C")]
        for index, title in enumerate(titles):
            ranked_list.insert(title, FINE, index)

        removed, changes = ranked_list.remove(titles[1].title_id)

        assert removed is titles[1]
        assert ranked_list.tier_members(FINE) == (titles[0], titles[2])
        assert _scores(ranked_list, FINE) == [6.9, 4.0]
        assert changes == []

    def test_remove_from_middle_moves_neighbours(self, ranked_list, make_title):
        titles = [make_title(name) for name in ("A", "B", "C")]
        for index, title in enumerate(titles):
            ranked_list.insert(title, FINE, index)

        _, changes = ranked_list.remove(titles[0].title_id)

        assert {change.title_id for change in changes} == {titles[1].title_id}
        assert titles[1].score == 6.9

    def test_remove_unknown_raises(self, ranked_list):
        with pytest.raises(NotFoundError) as excinfo:
            ranked_list.remove("missing")

        assert excinfo.value.title_id == "missing"


class TestReposition:
    def test_move_within_tier(self, ranked_list, make_title):
        titles = [make_title(name) for name in ("A", "B", "C")]
        for index, title in enumerate(titles):
            ranked_list.insert(title, FINE, index)

        ranked_list.reposition(titles[2].title_id, 0, FINE)

        assert ranked_list.tier_members(FINE) == (titles[2], titles[0], titles[1])
        assert titles[2].score == 6.9

    def test_move_across_tiers_rescores_both(self, ranked_list, make_title):
        a, b = make_title("A"), make_title("B")
        ranked_list.insert(a, FINE, 0)
        ranked_list.insert(b, FINE, 1)

        changes = ranked_list.reposition(b.title_id, 0, LIKED)

        assert b.tier is LIKED
        assert ranked_list.tier_members(LIKED) == (b,)
        assert b.score == pytest.approx(8.45)
        assert a.score == pytest.approx(5.45)
        assert {change.title_id for change in changes} == {a.title_id, b.title_id}

    def test_index_counts_tier_without_the_title(self, ranked_list, make_title):
        a, b = make_title("A"), make_title("B")
        ranked_list.insert(a, FINE, 0)
        ranked_list.insert(b, FINE, 1)

        with pytest.raises(InvalidPositionError):
            ranked_list.reposition(a.title_id, 2, FINE)

    def test_unknown_title(self, ranked_list):
        with pytest.raises(NotFoundError):
            ranked_list.reposition("missing", 0, FINE)


class TestLoad:
    def test_load_keeps_order_and_rescores(self, ranked_list):
        a = Title("a", "A", FINE, score=1.0)
        b = Title("b", "B", FINE, score=1.0)
        c = Title("c", "C", LIKED, score=9.0)

        dropped = ranked_list.load([c, a, b])

        assert dropped == []
        assert ranked_list.titles() == [c, a, b]
        assert _scores(ranked_list, FINE) == [6.9, 4.0]
        assert c.score == pytest.approx(8.45)

    def test_load_drops_lower_scored_catalog_duplicate(self, ranked_list):
        low = Title("low", "Heat", FINE, catalog_id="tmdb:949", score=5.0)
        high = Title("high", "Heat", LIKED, catalog_id="tmdb:949", score=9.0)

        dropped = ranked_list.load([low, high])

        assert dropped == [low]
        assert ranked_list.titles() == [high]

    def test_load_replaces_previous_contents(self, ranked_list, make_title):
        ranked_list.insert(make_title("Old"), FINE, 0)

        ranked_list.load([Title("n", "New", FINE)])

        assert [title.display_title for title in ranked_list] == ["New"]
        assert "n" in ranked_list


class TestReads:
    def test_titles_are_liked_first(self, ranked_list, make_title):
        fine = make_title("Fine")
        liked = make_title("Liked", LIKED)
        disliked = make_title("Disliked", SentimentTier.DISLIKED)
        ranked_list.insert(fine, FINE, 0)
        ranked_list.insert(disliked, SentimentTier.DISLIKED, 0)
        ranked_list.insert(liked, LIKED, 0)

        assert ranked_list.titles() == [liked, fine, disliked]
        assert len(ranked_list) == 3

    def test_tier_members_is_a_snapshot(self, ranked_list, make_title):
        snapshot = ranked_list.tier_members(FINE)
        ranked_list.insert(make_title("A"), FINE, 0)

        assert snapshot == ()

    def test_find_by_catalog(self, ranked_list, make_title):
        title = make_title("Heat", catalog_id="tmdb:949")
        ranked_list.insert(title, FINE, 0)

        assert ranked_list.find_by_catalog("tmdb:949") is title
        assert ranked_list.find_by_catalog("tmdb:1") is None
