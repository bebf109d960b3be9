"""Tests for RatingService: lists, community propagation and persistence."""

import pytest

from cinerank.exceptions import DegenerateAggregateError, SessionStateError
from cinerank.persistence import MemorySink
from cinerank.protocols import Identity, MetadataLookup, TitleMetadata
from cinerank.ranking import ComparisonOutcome, MediaType, SentimentTier, Title
from cinerank.service import RatingService

LIKED = SentimentTier.LIKED
FINE = SentimentTier.FINE


class FakeCatalog:
    def __init__(self, entries: dict[str, TitleMetadata]) -> None:
        self.entries = entries

    def fetch_title(self, catalog_id: str, media_type: MediaType) -> TitleMetadata:
        return self.entries[catalog_id]


class BrokenSink(MemorySink):
    def save_title(self, user_id, title, position):
        msg = "connection reset"
        raise ConnectionError(msg)


class TestRate:
    def test_first_rating_contributes_to_community(self, make_service, aggregator, memory_sink, scripted_prompt):
        service = make_service()
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")

        outcome = service.rate(heat, scripted_prompt([]))

        assert outcome.title is heat
        assert heat.score == pytest.approx(8.45)
        assert aggregator.rating("tmdb:949").number_of_ratings == 1
        assert aggregator.rating("tmdb:949").average_rating == pytest.approx(8.45)
        assert [rating.catalog_id for rating in outcome.aggregates] == ["tmdb:949"]
        assert memory_sink.titles["alice"][heat.title_id][1] == 0
        assert memory_sink.global_ratings["tmdb:949"].number_of_ratings == 1

    def test_moved_neighbours_are_revised(self, make_service, aggregator, scripted_prompt):
        service = make_service()
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")
        ronin = Title.new("Ronin", LIKED, catalog_id="tmdb:8195")
        service.rate(heat, scripted_prompt([]))

        outcome = service.rate(ronin, scripted_prompt([ComparisonOutcome.PREFER_PIVOT]))

        assert [heat.score, ronin.score] == [10.0, 6.9]
        assert aggregator.rating("tmdb:949").number_of_ratings == 1
        assert aggregator.rating("tmdb:949").average_rating == pytest.approx(10.0)
        assert aggregator.rating("tmdb:8195").average_rating == pytest.approx(6.9)
        assert {rating.catalog_id for rating in outcome.aggregates} == {"tmdb:949", "tmdb:8195"}

    def test_users_share_the_aggregate(self, make_service, aggregator, scripted_prompt):
        alice, bob = make_service("alice"), make_service("bob")

        alice.rate(Title.new("Heat", LIKED, catalog_id="tmdb:949"), scripted_prompt([]))
        bob.rate(Title.new("Heat", FINE, catalog_id="tmdb:949"), scripted_prompt([]))

        rating = aggregator.rating("tmdb:949")
        assert rating.number_of_ratings == 2
        assert rating.average_rating == pytest.approx((8.45 + 5.45) / 2)

    def test_titles_without_catalog_id_stay_private(self, make_service, aggregator, scripted_prompt):
        service = make_service()

        outcome = service.rate(Title.new("Home video", FINE), scripted_prompt([]))

        assert outcome.aggregates == []
        assert aggregator.ratings() == []

    def test_cancel_changes_nothing(self, make_service, aggregator, memory_sink, scripted_prompt):
        service = make_service()
        service.rate(Title.new("Heat", LIKED, catalog_id="tmdb:949"), scripted_prompt([]))
        before = aggregator.rating("tmdb:949")

        outcome = service.rate(Title.new("Ronin", LIKED, catalog_id="tmdb:8195"), scripted_prompt([None]))

        assert outcome is None
        assert len(service.ranked_list(MediaType.MOVIE)) == 1
        assert aggregator.rating("tmdb:949") == before
        assert aggregator.rating("tmdb:8195") is None
        assert len(memory_sink.titles["alice"]) == 1

    def test_media_types_have_separate_lists(self, make_service, scripted_prompt):
        service = make_service()

        service.rate(Title.new("Heat", LIKED), scripted_prompt([]))
        service.rate(Title.new("The Wire", LIKED, media_type=MediaType.TV), scripted_prompt([]))

        assert len(service.ranked_list(MediaType.MOVIE)) == 1
        assert len(service.ranked_list(MediaType.TV)) == 1

    def test_from_catalog_metadata(self, make_service, scripted_prompt):
        service = make_service()
        catalog = FakeCatalog({"tmdb:949": TitleMetadata("Heat", release_info="1995", runtime_minutes=170)})
        metadata = catalog.fetch_title("tmdb:949", MediaType.MOVIE)
        title = Title.from_metadata(metadata, LIKED, catalog_id="tmdb:949")

        service.rate(title, scripted_prompt([]))

        assert title.display_title == "Heat"
        assert service.ranked_list(MediaType.MOVIE).find_by_catalog("tmdb:949") is title

    def test_from_catalog_lookup(self, make_service, scripted_prompt):
        service = make_service()
        lookup: MetadataLookup = FakeCatalog(
            {"tmdb:949": TitleMetadata("Heat", release_info="1995", runtime_minutes=170)},
        )
        title = Title.from_catalog(lookup, "tmdb:949", LIKED)

        service.rate(title, scripted_prompt([]))

        assert title.display_title == "Heat"
        assert title.catalog_id == "tmdb:949"
        assert service.ranked_list(MediaType.MOVIE).find_by_catalog("tmdb:949") is title

    def test_complete_requires_resolved_session(self, make_service):
        service = make_service()
        session = service.start_rating(Title.new("Heat", LIKED))

        with pytest.raises(SessionStateError):
            service.complete(session)


class TestRerank:
    def test_rerank_revises_community_score(self, make_service, aggregator, scripted_prompt):
        service = make_service()
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")
        service.rate(heat, scripted_prompt([]))

        outcome = service.rerank(heat.title_id, FINE, scripted_prompt([]), MediaType.MOVIE)

        assert heat.tier is FINE
        assert heat.score == pytest.approx(5.45)
        assert heat.original_score == pytest.approx(5.45)
        assert outcome.aggregates[-1].average_rating == pytest.approx(5.45)
        assert aggregator.rating("tmdb:949").number_of_ratings == 1

    def test_rerank_cancelled(self, make_service, aggregator, scripted_prompt):
        service = make_service()
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")
        ronin = Title.new("Ronin", LIKED, catalog_id="tmdb:8195")
        service.rate(heat, scripted_prompt([]))
        service.rate(ronin, scripted_prompt([ComparisonOutcome.PREFER_PIVOT]))

        assert service.rerank(ronin.title_id, LIKED, scripted_prompt([None]), MediaType.MOVIE) is None
        assert service.ranked_list(MediaType.MOVIE).tier_members(LIKED) == (heat, ronin)


class TestRemove:
    def test_remove_retracts_and_revises(self, make_service, aggregator, memory_sink, scripted_prompt):
        service = make_service()
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")
        ronin = Title.new("Ronin", LIKED, catalog_id="tmdb:8195")
        service.rate(heat, scripted_prompt([]))
        service.rate(ronin, scripted_prompt([ComparisonOutcome.PREFER_PIVOT]))

        outcome = service.remove(heat.title_id, MediaType.MOVIE)

        assert outcome.title is heat
        assert aggregator.rating("tmdb:949").number_of_ratings == 0
        assert ronin.score == pytest.approx(8.45)
        assert aggregator.rating("tmdb:8195").average_rating == pytest.approx(8.45)
        assert heat.title_id not in memory_sink.titles["alice"]
        assert memory_sink.global_ratings["tmdb:949"].number_of_ratings == 0

    def test_rating_again_after_removal_contributes(self, make_service, aggregator, scripted_prompt):
        service = make_service()
        dune = Title.new("Dune", LIKED, catalog_id="tt1")
        service.rate(dune, scripted_prompt([]))
        service.remove(dune.title_id, MediaType.MOVIE)

        outcome = service.rate(dune, scripted_prompt([]))

        assert outcome.aggregate_errors == []
        rating = aggregator.rating("tt1")
        assert rating.number_of_ratings == 1
        assert rating.average_rating == pytest.approx(8.45)


class TestFailureReporting:
    def test_aggregate_errors_are_collected(self, aggregator, scripted_prompt):
        # A list loaded from storage has never been folded into this aggregator
        sink = MemorySink()
        sink.save_title("alice", Title("old", "Old", LIKED, catalog_id="c-old", score=8.45), 0)
        service = RatingService(Identity("alice", "alice"), aggregator, sink)
        service.load()

        outcome = service.rate(
            Title.new("New", LIKED, catalog_id="c-new"),
            scripted_prompt([ComparisonOutcome.PREFER_PIVOT]),
        )

        assert len(outcome.aggregate_errors) == 1
        assert isinstance(outcome.aggregate_errors[0], DegenerateAggregateError)
        assert outcome.aggregate_errors[0].catalog_id == "c-old"
        assert aggregator.rating("c-new").number_of_ratings == 1
        assert len(service.ranked_list(MediaType.MOVIE)) == 2

    def test_persistence_failures_do_not_roll_back(self, aggregator, scripted_prompt):
        service = RatingService(Identity("alice", "alice"), aggregator, BrokenSink())
        heat = Title.new("Heat", LIKED, catalog_id="tmdb:949")

        outcome = service.rate(heat, scripted_prompt([]))

        assert outcome.persistence_failures
        assert all(failure.operation == "save_title" for failure in outcome.persistence_failures)
        assert heat.title_id in service.ranked_list(MediaType.MOVIE)
        assert aggregator.rating("tmdb:949").number_of_ratings == 1

    def test_without_sink(self, aggregator, scripted_prompt):
        service = RatingService(Identity("alice", "alice"), aggregator)

        outcome = service.rate(Title.new("Heat", LIKED), scripted_prompt([]))

        assert outcome.persistence_failures == []
        assert service.load() == []


class TestLoad:
    def test_load_repairs_and_writes_back(self, aggregator, memory_sink):
        memory_sink.save_title("alice", Title("a", "Heat", LIKED, catalog_id="tmdb:949", score=9.9), 0)
        memory_sink.save_title("alice", Title("b", "Heat", FINE, catalog_id="tmdb:949", score=5.0), 0)
        memory_sink.save_title("alice", Title("c", "Ronin", FINE, score=1.0), 1)
        service = RatingService(Identity("alice", "alice"), aggregator, memory_sink)

        dropped = service.load()

        assert [title.title_id for title in dropped] == ["b"]
        movies = service.ranked_list(MediaType.MOVIE)
        assert [title.title_id for title in movies] == ["a", "c"]
        assert movies.get("c").score == pytest.approx(5.45)
        assert set(memory_sink.titles["alice"]) == {"a", "c"}
        assert memory_sink.titles["alice"]["c"][0].score == pytest.approx(5.45)
        assert aggregator.ratings() == []
