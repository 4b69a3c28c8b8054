from __future__ import annotations

from typing import Optional


class HgStatsError(Exception):
    """Base class for errors the CLI reports without a traceback."""


class FetchError(HgStatsError):
    def __init__(self, url: str, status: int, reason: Optional[str] = None) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"{status} {reason}" if reason else str(status)
        super().__init__(f"Failed to fetch {url}: {detail}")


class DecodeError(HgStatsError):
    """Response body does not have the expected document shape."""


class ParseError(HgStatsError):
    """HTML page does not have the expected structure."""


class StoreError(HgStatsError):
    """Persisted JSON file exists but does not have the expected shape."""


class RosterError(HgStatsError):
    pass
