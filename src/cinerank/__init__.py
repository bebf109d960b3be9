"""Cinerank: rank movies and TV by pairwise comparison.

Each user keeps a ranked list per media type, split into three sentiment
tiers. New titles are placed by a binary search driven by "which did you
prefer?" answers, scores are spread evenly across the tier's range, and
every score change is folded into a running community average.
"""

__version__ = "0.1.0"
