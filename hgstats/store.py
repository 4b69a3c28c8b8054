from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import StoreError
from .leaderboard import MissingBot


RecordKey = tuple[str, str, str]


def record_key(record: dict[str, Any]) -> RecordKey:
    return (str(record.get("date", "")), str(record.get("stage", "")), str(record.get("seed", "")))


def day_record_path(data_dir: Path, day: str) -> Path:
    return data_dir / f"data-{day}.json"


def carry_forward_commits(new: dict[str, Any], old: dict[str, Any]) -> tuple[dict[str, Any], int]:
    """Copy of ``new`` where entries without a commit take the one stored in ``old`` for the same bot index."""
    old_commits: dict[int, str] = {}
    for entry in old.get("entries") or []:
        if isinstance(entry, dict) and isinstance(entry.get("id"), int) and entry.get("git"):
            old_commits[entry["id"]] = str(entry["git"])

    carried = 0
    entries: list[Any] = []
    for entry in new.get("entries") or []:
        if isinstance(entry, dict) and not entry.get("git") and entry.get("id") in old_commits:
            entry = {**entry, "git": old_commits[entry["id"]]}
            carried += 1
        entries.append(entry)
    return {**new, "entries": entries}, carried


def upsert_record(
    records: Iterable[dict[str, Any]],
    record: dict[str, Any],
    *,
    carry_commits: bool = True,
) -> tuple[list[dict[str, Any]], int]:
    """Replace the record with the same (date, stage, seed) or append it; result is sorted by date.

    Returns the new list and the number of commit hashes carried over from the replaced record.
    """
    out = list(records)
    key = record_key(record)
    carried = 0
    idx = next((i for i, r in enumerate(out) if record_key(r) == key), None)
    if idx is None:
        out.append(record)
    else:
        if carry_commits:
            record, carried = carry_forward_commits(record, out[idx])
        out[idx] = record
    out.sort(key=lambda r: str(r.get("date", "")))
    return out, carried


def read_store(path: Path) -> list[dict[str, Any]]:
    """Array-of-records file; a missing file is an empty store."""
    data = _read_json(path)
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise StoreError(f"{path} is not a JSON array of records")
    return data


def read_day_record(path: Path) -> Optional[dict[str, Any]]:
    data = _read_json(path)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise StoreError(f"{path} is not a JSON object")
    return data


def save_day_record(path: Path, record: dict[str, Any]) -> int:
    """Write one day's record to its own file, keeping commit hashes from a previous run of the same scrim."""
    carried = 0
    existing = read_day_record(path)
    if existing is not None and record_key(existing) == record_key(record):
        record, carried = carry_forward_commits(record, existing)
    write_json(path, record)
    return carried


def save_to_array_store(path: Path, record: dict[str, Any], *, carry_commits: bool = True) -> int:
    existing = read_store(path)
    _check_record_shape(path, existing, record)
    records, carried = upsert_record(existing, record, carry_commits=carry_commits)
    write_json(path, records, indent=2)
    return carried


def _record_kind(record: dict[str, Any]) -> str:
    # Leaderboard records carry the stage key; page snapshots don't.
    return "leaderboard" if "stageKey" in record else "snapshot"


def _check_record_shape(path: Path, records: list[dict[str, Any]], record: dict[str, Any]) -> None:
    kind = _record_kind(record)
    for r in records:
        if _record_kind(r) != kind:
            raise StoreError(f"{path} holds {_record_kind(r)} records, not adding a {kind} record")


def read_missing_bots(path: Path) -> list[Any]:
    data = _read_json(path)
    if data is None:
        return []
    if not isinstance(data, list):
        raise StoreError(f"{path} is not a JSON array")
    return data


def append_missing_bots(path: Path, missing: Iterable[MissingBot]) -> int:
    """Add bots not already listed (by id). The file is only rewritten when something is new."""
    existing = read_missing_bots(path)
    seen = {b.get("id") for b in existing if isinstance(b, dict)}
    new: list[dict[str, Any]] = []
    for bot in missing:
        if bot.id in seen:
            continue
        seen.add(bot.id)
        new.append(bot.to_dict())

    if new:
        write_json(path, [*existing, *new], indent="\t")
    return len(new)


def write_json(path: Path, data: Any, *, indent: int | str | None = None) -> None:
    """Write JSON via a temp file in the same directory, so readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if indent is None:
        raw = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    else:
        raw = json.dumps(data, ensure_ascii=False, indent=indent) + "\n"

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(raw)
        os.replace(tmp_name, path)
    except BaseException:
        _unlink_if_exists(Path(tmp_name))
        raise


def _read_json(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise StoreError(f"{path} is not valid JSON ({exc})") from exc


def _unlink_if_exists(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
