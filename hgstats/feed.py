from __future__ import annotations

import gzip
import json
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .config import HTTP_TIMEOUT_S, USER_AGENT, Endpoints
from .errors import DecodeError, FetchError


_GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class RoundResult:
    seed: str
    score: int
    gem_utilization: float
    floor_coverage: float
    disqualified_for: Optional[str]
    response_time_median: Optional[float]  # nanoseconds
    response_time_max: Optional[float]  # nanoseconds
    ticks_to_first_capture: Optional[int] = None


@dataclass(frozen=True)
class BotProfile:
    name: str
    emoji: str
    stage_key: str
    stage_title: str
    seed: str
    git_hash: str
    timestamp: Optional[str]
    total_score: int
    gem_utilization_mean: float
    gem_utilization_cv: float
    floor_coverage_mean: float
    rounds: tuple[RoundResult, ...]

    @property
    def round_seeds(self) -> tuple[str, ...]:
        return tuple(r.seed for r in self.rounds)


@dataclass(frozen=True)
class BotResult:
    bot_id: str
    deterministic: bool
    profile: Optional[BotProfile]
    raw: dict[str, Any]  # untouched feed object, kept for the missing-bots report


@dataclass(frozen=True)
class ScrimFeed:
    date: str
    scrim_seed: str
    bots: tuple[BotResult, ...]  # feed order


def fetch_scrim_feed(
    *,
    day: str,
    endpoints: Endpoints = Endpoints(),
    session: Optional[requests.Session] = None,
) -> ScrimFeed:
    url = endpoints.feed_url(day)
    print(f"Fetching {url}")
    sess = session or requests.Session()
    headers = {"User-Agent": USER_AGENT}
    resp = sess.get(url, headers=headers, timeout=HTTP_TIMEOUT_S)
    if not resp.ok:
        raise FetchError(url, resp.status_code, resp.reason)
    return decode_scrim_feed(resp.content, source=url)


def decode_scrim_feed(body: bytes, *, source: str = "feed") -> ScrimFeed:
    # requests undoes Content-Encoding: gzip, but the .json.gz file may also be served as a raw gzip payload.
    if body[:2] == _GZIP_MAGIC:
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError) as exc:
            raise DecodeError(f"{source}: invalid gzip payload ({exc})") from exc
    try:
        doc = json.loads(body)
    except ValueError as exc:
        raise DecodeError(f"{source}: body is not JSON ({exc})") from exc
    return parse_scrim_feed(doc, source=source)


def parse_scrim_feed(doc: Any, *, source: str = "feed") -> ScrimFeed:
    if not isinstance(doc, dict):
        raise DecodeError(f"{source}: expected a JSON object")
    bots_obj = doc.get("bots")
    if not isinstance(bots_obj, dict):
        raise DecodeError(f"{source}: missing 'bots' object")

    bots: list[BotResult] = []
    for bot_id, raw in bots_obj.items():
        if not isinstance(raw, dict):
            raise DecodeError(f"{source}: bot {bot_id!r} is not an object")
        deterministic = bool(raw.get("deterministic"))
        profile = None
        if deterministic and raw.get("profile") is not None:
            profile = _parse_profile(raw["profile"], where=f"{source}: bot {bot_id!r}")
        bots.append(BotResult(bot_id=str(bot_id), deterministic=deterministic, profile=profile, raw=raw))

    return ScrimFeed(
        date=_str(doc, "date", where=source),
        scrim_seed=_str(doc, "scrim_seed", where=source),
        bots=tuple(bots),
    )


def _parse_profile(obj: Any, *, where: str) -> BotProfile:
    if not isinstance(obj, dict):
        raise DecodeError(f"{where}: profile is not an object")
    rounds_obj = obj.get("rounds")
    if not isinstance(rounds_obj, list):
        raise DecodeError(f"{where}: profile.rounds is not a list")
    return BotProfile(
        name=_opt_str(obj.get("name")) or "",
        emoji=_opt_str(obj.get("emoji")) or "",
        stage_key=_str(obj, "stage_key", where=where),
        stage_title=_str(obj, "stage_title", where=where),
        seed=_opt_str(obj.get("seed")) or "",
        git_hash=_opt_str(obj.get("git_hash")) or "",
        timestamp=_opt_str(obj.get("timestamp")),
        total_score=_num(obj, "total_score", where=where),
        gem_utilization_mean=_num(obj, "gem_utilization_mean", where=where, default=0),
        gem_utilization_cv=_num(obj, "gem_utilization_cv", where=where, default=0),
        floor_coverage_mean=_num(obj, "floor_coverage_mean", where=where, default=0),
        rounds=tuple(_parse_round(r, where=f"{where} round {i}") for i, r in enumerate(rounds_obj)),
    )


def _parse_round(obj: Any, *, where: str) -> RoundResult:
    if not isinstance(obj, dict):
        raise DecodeError(f"{where}: round is not an object")
    stats = obj.get("response_time_stats") or {}
    if not isinstance(stats, dict):
        raise DecodeError(f"{where}: response_time_stats is not an object")
    disqualified = obj.get("disqualified_for")
    ticks = obj.get("ticks_to_first_capture")
    return RoundResult(
        seed=_str(obj, "seed", where=where),
        score=_num(obj, "score", where=where),
        gem_utilization=_num(obj, "gem_utilization", where=where, default=0),
        floor_coverage=_num(obj, "floor_coverage", where=where, default=0),
        disqualified_for=str(disqualified) if disqualified is not None else None,
        response_time_median=_opt_num(stats.get("median")),
        response_time_max=_opt_num(stats.get("max")),
        ticks_to_first_capture=int(ticks) if isinstance(ticks, (int, float)) and not isinstance(ticks, bool) else None,
    )


def _str(obj: dict[str, Any], key: str, *, where: str) -> str:
    value = obj.get(key)
    if value is None:
        raise DecodeError(f"{where}: missing {key!r}")
    if isinstance(value, (dict, list)):
        raise DecodeError(f"{where}: {key!r} is not a string")
    return str(value)


def _opt_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _num(obj: dict[str, Any], key: str, *, where: str, default: Optional[float] = None) -> Any:
    value = obj.get(key)
    if value is None and default is not None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"{where}: {key!r} is not a number")
    return value


def _opt_num(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value
