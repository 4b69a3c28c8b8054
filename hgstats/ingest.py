from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from .config import Endpoints, default_array_store_path
from .errors import HgStatsError
from .feed import ScrimFeed, fetch_scrim_feed
from .leaderboard import transform_scrim
from .matching import MatchResult, candidates_from_feed, match_commits
from .roster import Roster
from .scrims import extract_scrim_rows, fetch_scrims_html, parse_scrims_snapshot
from .store import (
    append_missing_bots,
    day_record_path,
    read_missing_bots,
    save_day_record,
    save_to_array_store,
)
from .util import today_iso, warn


STORE_LAYOUTS = ("daily", "array")


@dataclass(frozen=True)
class UpdateSummary:
    date: str
    stage: str
    seed: str
    entries: int
    commits_matched: int
    commits_carried: int
    unmatched_rows: int
    new_missing_bots: int
    output_path: Path


@dataclass(frozen=True)
class SnapshotSummary:
    date: str
    stage: str
    seed: str
    entries: int
    output_path: Path


def update_day(
    *,
    day: str,
    roster: Roster,
    data_dir: Path,
    missing_bots_path: Path,
    store_layout: str = "daily",
    array_path: Optional[Path] = None,
    endpoints: Endpoints = Endpoints(),
    fetch_scrims: Optional[bool] = None,
    session: Optional[requests.Session] = None,
) -> UpdateSummary:
    """Fetch one day's scrim, attach commit hashes and write it to the store.

    The scrims page only shows the current scrim, so by default it is consulted
    only when ``day`` is today. Its failure is not fatal; the stats feed is.
    """
    if store_layout not in STORE_LAYOUTS:
        raise ValueError(f"Unknown store layout: {store_layout}")

    print(f"Processing data for {day}")
    sess = session or requests.Session()

    feed = fetch_scrim_feed(day=day, endpoints=endpoints, session=sess)
    print(f"Fetched scrim data with {len(feed.bots)} bots")

    if fetch_scrims is None:
        fetch_scrims = day == today_iso()
    match = MatchResult(commits={}, unmatched=0)
    if fetch_scrims:
        match = recover_commits(feed=feed, roster=roster, endpoints=endpoints, session=sess)

    result = transform_scrim(feed, roster, match.commits)
    record = result.record
    print(f"Transformed to leaderboard with {len(record.entries)} entries")

    # Fail on an unreadable report before the record is written.
    if result.missing_bots:
        read_missing_bots(missing_bots_path)

    if store_layout == "array":
        output_path = array_path or default_array_store_path()
        carried = save_to_array_store(output_path, record.to_dict())
    else:
        output_path = day_record_path(data_dir, day)
        carried = save_day_record(output_path, record.to_dict())
    print(f"Wrote {output_path}")
    if carried:
        print(f"Kept {carried} commit hashes from the previous run")

    new_missing = 0
    if result.missing_bots:
        new_missing = append_missing_bots(missing_bots_path, result.missing_bots)
        if new_missing:
            print(f"Found {new_missing} new missing bots, wrote {missing_bots_path}")

    return UpdateSummary(
        date=record.date,
        stage=record.stage,
        seed=record.seed,
        entries=len(record.entries),
        commits_matched=len(match.commits),
        commits_carried=carried,
        unmatched_rows=match.unmatched,
        new_missing_bots=new_missing,
        output_path=output_path,
    )


def recover_commits(
    *,
    feed: ScrimFeed,
    roster: Roster,
    endpoints: Endpoints = Endpoints(),
    session: Optional[requests.Session] = None,
) -> MatchResult:
    """Commit hashes from the scrims page, or none if the page can't be fetched or read."""
    try:
        page = fetch_scrims_html(endpoints=endpoints, session=session)
        rows = extract_scrim_rows(page)
    except (HgStatsError, requests.RequestException) as exc:
        warn(f"Failed to read commit hashes from scrims page, keeping stored ones: {type(exc).__name__}: {exc}")
        return MatchResult(commits={}, unmatched=0)

    result = match_commits(candidates_from_feed(feed, roster), rows)
    if result.unmatched:
        warn(f"Scrim page rows unmatched: {result.unmatched}")
    return result


def update_snapshot(
    *,
    array_path: Path,
    endpoints: Endpoints = Endpoints(),
    session: Optional[requests.Session] = None,
) -> SnapshotSummary:
    """Store the scrims page's current leaderboard in the flat array-of-days file."""
    page = fetch_scrims_html(endpoints=endpoints, session=session)
    board = parse_scrims_snapshot(page)
    save_to_array_store(array_path, board.to_dict(), carry_commits=False)
    return SnapshotSummary(
        date=board.date,
        stage=board.stage,
        seed=board.seed,
        entries=len(board.entries),
        output_path=array_path,
    )
