"""Allow ``python -m cinerank``."""

from cinerank.cli.main import app

if __name__ == "__main__":
    app()
