"""Cross-user community rating aggregation."""

from .aggregator import CommunityAggregator, GlobalRating, LeaderboardEntry

__all__ = ["CommunityAggregator", "GlobalRating", "LeaderboardEntry"]
