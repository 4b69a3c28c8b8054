from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


BASE_URL = "https://hiddengems.gymnasiumsteglitz.de"
USER_AGENT = "hgstats/0.1 (contact: local)"
HTTP_TIMEOUT_S = 60


@dataclass(frozen=True)
class Endpoints:
    base_url: str = BASE_URL

    def feed_url(self, day: str) -> str:
        return f"{self.base_url.rstrip('/')}/dl/stats/{day}.json.gz"

    def scrims_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/scrims"


def default_json_dir() -> Path:
    return Path("json")


def default_roster_path() -> Path:
    return default_json_dir() / "bots.json"


def default_data_dir() -> Path:
    # One leaderboard file per day: data-YYYY-MM-DD.json
    return default_json_dir() / "data"


def default_array_store_path() -> Path:
    # All modern records in one array; lives beside the per-day files.
    return default_json_dir() / "data.json"


def default_legacy_store_path() -> Path:
    # Flat snapshot records scraped from the scrims page.
    return Path("data.json")


def default_missing_bots_path() -> Path:
    return Path("missing_bots.json")
