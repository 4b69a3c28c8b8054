"""Hidden Gems scrim results -> daily leaderboard JSON."""

__version__ = "0.1.0"
