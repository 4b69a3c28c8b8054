from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import (
    BASE_URL,
    Endpoints,
    default_array_store_path,
    default_data_dir,
    default_legacy_store_path,
    default_missing_bots_path,
    default_roster_path,
)
from .errors import HgStatsError
from .ingest import STORE_LAYOUTS, update_day, update_snapshot
from .roster import load_roster
from .util import is_iso_date, today_iso


def _iso_date(value: str) -> str:
    if not is_iso_date(value):
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")
    return value


_COMMANDS = ("update", "snapshot")


def _default_to_update(argv: list[str]) -> list[str]:
    # `hgstats 2025-11-17` and a bare `hgstats` mean `hgstats update ...`.
    if argv and argv[0] in _COMMANDS + ("-h", "--help"):
        return list(argv)
    return ["update", *argv]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m hgstats", description="Hidden Gems scrims -> daily leaderboard JSON")
    sub = parser.add_subparsers(dest="cmd", required=True)

    update = sub.add_parser("update", help="Fetch one day's scrim results and update the leaderboard data")
    update.add_argument("date", nargs="?", type=_iso_date, default=None, help="Day, YYYY-MM-DD (default: today)")
    update.add_argument("--roster", type=Path, default=default_roster_path(), help="Known bots (bots.json)")
    update.add_argument("--data-dir", type=Path, default=default_data_dir(), help="Folder for data-YYYY-MM-DD.json")
    update.add_argument("--store", choices=list(STORE_LAYOUTS), default="daily", help="One file per day, or one array file")
    update.add_argument("--array-path", type=Path, default=default_array_store_path(), help="Array file for --store array (json/data.json)")
    update.add_argument("--missing-bots", type=Path, default=default_missing_bots_path(), help="Report of bots not in the roster")
    update.add_argument("--base-url", type=str, default=BASE_URL, help="Scrim server base URL")
    scrims = update.add_mutually_exclusive_group()
    scrims.add_argument("--no-scrims", action="store_true", help="Don't read commit hashes from the scrims page")
    scrims.add_argument("--force-scrims", action="store_true", help="Read the scrims page even if the date is not today")

    snapshot = sub.add_parser("snapshot", help="Store the scrims page's current leaderboard in the array file")
    snapshot.add_argument("--out", type=Path, default=default_legacy_store_path(), help="Snapshot array file (data.json)")
    snapshot.add_argument("--base-url", type=str, default=BASE_URL, help="Scrim server base URL")

    args = parser.parse_args(_default_to_update(sys.argv[1:] if argv is None else argv))

    try:
        if args.cmd == "update":
            return _run_update(args)
        if args.cmd == "snapshot":
            return _run_snapshot(args)
    except HgStatsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.error(f"Unknown command: {args.cmd}")
    return 2


def _run_update(args: argparse.Namespace) -> int:
    day = args.date or today_iso()
    roster = load_roster(args.roster)
    print(f"Loaded {len(roster)} bots")

    fetch_scrims = None
    if args.no_scrims:
        fetch_scrims = False
    elif args.force_scrims:
        fetch_scrims = True

    res = update_day(
        day=day,
        roster=roster,
        data_dir=args.data_dir,
        missing_bots_path=args.missing_bots,
        store_layout=args.store,
        array_path=args.array_path,
        endpoints=Endpoints(base_url=args.base_url),
        fetch_scrims=fetch_scrims,
    )
    print(
        "Update done:",
        f"date={res.date}",
        f"stage={res.stage!r}",
        f"seed={res.seed}",
        f"entries={res.entries}",
        f"commits={res.commits_matched}",
        f"kept={res.commits_carried}",
        f"unmatched={res.unmatched_rows}",
        f"missing_bots={res.new_missing_bots}",
        sep=" ",
    )
    return 0


def _run_snapshot(args: argparse.Namespace) -> int:
    res = update_snapshot(array_path=args.out, endpoints=Endpoints(base_url=args.base_url))
    print(f"Updated {res.output_path} with {res.entries} entries ({res.date}, {res.stage}, seed {res.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
