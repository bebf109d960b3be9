"""Command line interface for cinerank."""

from cinerank.cli.main import app

__all__ = ["app"]
