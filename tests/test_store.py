from __future__ import annotations

import json

import pytest

from hgstats.errors import StoreError
from hgstats.leaderboard import MissingBot
from hgstats.store import (
    append_missing_bots,
    carry_forward_commits,
    day_record_path,
    read_store,
    record_key,
    save_day_record,
    save_to_array_store,
    upsert_record,
)


def rec(date: str, commits: dict[int, str], *, stage: str = "Stage 2", seed: str = "seed") -> dict:
    return {
        "date": date,
        "stage": stage,
        "stageKey": "stage-2",
        "seed": seed,
        "roundSeeds": ["s1"],
        "entries": [{"id": i, "score": 10 - i, "gu": 0, "fc": 0, "git": g, "rounds": []} for i, g in commits.items()],
    }


def test_record_key():
    assert record_key(rec("2025-11-17", {})) == ("2025-11-17", "Stage 2", "seed")


def test_carry_forward_fills_only_empty_commits():
    old = rec("2025-11-17", {1: "old1", 2: "old2", 3: "abc123"})
    new = rec("2025-11-17", {1: "new1", 2: "", 3: "", 4: ""})
    merged, carried = carry_forward_commits(new, old)
    assert {e["id"]: e["git"] for e in merged["entries"]} == {1: "new1", 2: "old2", 3: "abc123", 4: ""}
    assert carried == 2
    # input is left alone
    assert new["entries"][1]["git"] == ""


def test_upsert_replaces_same_key_and_keeps_dates_sorted():
    records = [rec("2025-11-15", {}), rec("2025-11-17", {3: "abc123"})]
    records, carried = upsert_record(records, rec("2025-11-16", {}))
    assert [r["date"] for r in records] == ["2025-11-15", "2025-11-16", "2025-11-17"]
    assert carried == 0

    records, carried = upsert_record(records, rec("2025-11-17", {3: ""}))
    assert [r["date"] for r in records] == ["2025-11-15", "2025-11-16", "2025-11-17"]
    assert records[2]["entries"][0]["git"] == "abc123"
    assert carried == 1


def test_upsert_appends_when_stage_or_seed_differ():
    records, _ = upsert_record([rec("2025-11-17", {})], rec("2025-11-17", {}, seed="other"))
    assert len(records) == 2


def test_upsert_without_carry_forward():
    records, carried = upsert_record([rec("2025-11-17", {3: "abc"})], rec("2025-11-17", {3: ""}), carry_commits=False)
    assert records[0]["entries"][0]["git"] == ""
    assert carried == 0


def test_day_record_carries_commits_from_previous_run(tmp_path):
    path = day_record_path(tmp_path / "data", "2025-11-17")
    assert path.name == "data-2025-11-17.json"

    assert save_day_record(path, rec("2025-11-17", {3: "abc123", 4: "keep"})) == 0
    assert save_day_record(path, rec("2025-11-17", {3: "", 4: "newer"})) == 1

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert {e["id"]: e["git"] for e in stored["entries"]} == {3: "abc123", 4: "newer"}


def test_day_record_rerun_is_byte_identical(tmp_path):
    path = tmp_path / "data-2025-11-17.json"
    save_day_record(path, rec("2025-11-17", {0: "abc", 1: ""}))
    first = path.read_bytes()
    save_day_record(path, rec("2025-11-17", {0: "abc", 1: ""}))
    assert path.read_bytes() == first


def test_array_store_rerun_is_byte_identical(tmp_path):
    path = tmp_path / "data.json"
    save_to_array_store(path, rec("2025-11-16", {}))
    save_to_array_store(path, rec("2025-11-17", {0: "abc"}))
    first = path.read_bytes()
    save_to_array_store(path, rec("2025-11-17", {0: ""}))
    assert path.read_bytes() == first
    assert len(read_store(path)) == 2
    assert first.endswith(b"\n")


def test_missing_store_is_empty(tmp_path):
    assert read_store(tmp_path / "nope.json") == []


@pytest.mark.parametrize("content", ["{broken", '{"date": "x"}', "[1, 2]"])
def test_unparseable_store_is_fatal(tmp_path, content):
    path = tmp_path / "data.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StoreError):
        save_to_array_store(path, rec("2025-11-17", {}))
    assert path.read_text(encoding="utf-8") == content


def test_unparseable_day_record_is_fatal(tmp_path):
    path = tmp_path / "data-2025-11-17.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(StoreError):
        save_day_record(path, rec("2025-11-17", {}))


def test_missing_bots_are_deduplicated_across_runs(tmp_path):
    path = tmp_path / "missing_bots.json"
    ghost = MissingBot(id="ghost", data={"deterministic": True})

    assert append_missing_bots(path, [ghost, ghost]) == 1
    assert append_missing_bots(path, [ghost]) == 0
    assert append_missing_bots(path, [MissingBot(id="wraith", data={}), ghost]) == 1

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert [b["id"] for b in stored] == ["ghost", "wraith"]
    assert stored[0]["data"] == {"deterministic": True}


def test_missing_bots_file_not_written_when_nothing_new(tmp_path):
    path = tmp_path / "missing_bots.json"
    assert append_missing_bots(path, []) == 0
    assert not path.exists()


def test_array_store_refuses_to_mix_record_shapes(tmp_path):
    path = tmp_path / "data.json"
    save_to_array_store(path, rec("2025-11-17", {0: "abc"}))
    before = path.read_bytes()
    snapshot = {"date": "2025-11-17", "stage": "Stage #2: Caves", "seed": "seed", "entries": []}
    with pytest.raises(StoreError):
        save_to_array_store(path, snapshot, carry_commits=False)
    assert path.read_bytes() == before


def test_non_array_missing_bots_file_is_fatal(tmp_path):
    path = tmp_path / "missing_bots.json"
    path.write_text("{}", encoding="utf-8")
    with pytest.raises(StoreError):
        append_missing_bots(path, [MissingBot(id="ghost", data={})])
