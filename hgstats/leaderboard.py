from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .feed import BotProfile, ScrimFeed
from .roster import Roster
from .util import ns_to_ms, warn


NON_DETERMINISTIC = "non deterministic"


@dataclass(frozen=True)
class RoundEntry:
    score: float
    gu: float
    fc: float
    disqualified: Optional[str]
    timings: tuple[float, float]  # (median, max) response time in ms

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"s": self.score, "gu": self.gu, "fc": self.fc}
        if self.disqualified is not None:
            out["disqualified"] = self.disqualified
        out["t"] = list(self.timings)
        return out


@dataclass(frozen=True)
class LeaderboardEntry:
    roster_index: int
    score: float
    gu: float
    fc: float
    commit: str  # "" when unknown
    rounds: tuple[RoundEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.roster_index,
            "score": self.score,
            "gu": self.gu,
            "fc": self.fc,
            "git": self.commit,
            "rounds": [r.to_dict() for r in self.rounds],
        }


@dataclass(frozen=True)
class LeaderboardRecord:
    date: str
    stage: str
    stage_key: str
    seed: str
    round_seeds: tuple[str, ...]
    entries: tuple[LeaderboardEntry, ...]  # score descending

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "stage": self.stage,
            "stageKey": self.stage_key,
            "seed": self.seed,
            "roundSeeds": list(self.round_seeds),
            "entries": [e.to_dict() for e in self.entries],
        }


@dataclass(frozen=True)
class MissingBot:
    id: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "data": self.data}


@dataclass(frozen=True)
class TransformResult:
    record: LeaderboardRecord
    missing_bots: tuple[MissingBot, ...]


def transform_scrim(
    feed: ScrimFeed,
    roster: Roster,
    commits: Optional[Mapping[str, str]] = None,
) -> TransformResult:
    """Build the day's leaderboard from the stats feed.

    Stage info and round seeds come from the first deterministic bot with a profile.
    Bots missing from the roster are left out; deterministic ones are reported in
    ``missing_bots``. Entries are sorted by score, descending, ties in feed order.
    """
    commits = commits or {}
    reference = _reference_profile(feed)
    stage = reference.stage_title if reference else ""
    stage_key = reference.stage_key if reference else ""
    round_seeds = reference.round_seeds if reference else ()

    entries: list[LeaderboardEntry] = []
    missing: list[MissingBot] = []
    for bot in feed.bots:
        roster_index = roster.index_of(bot.bot_id)
        if roster_index is None:
            if bot.deterministic:
                missing.append(MissingBot(id=bot.bot_id, data=bot.raw))
            continue

        commit = commits.get(bot.bot_id, "")
        if not bot.deterministic:
            entries.append(_disqualified_entry(roster_index=roster_index, commit=commit, round_count=len(round_seeds)))
            continue
        if bot.profile is None:
            continue
        if reference is not None and bot.profile is not reference:
            _check_stage(bot.bot_id, bot.profile, reference)
        entries.append(_scored_entry(roster_index=roster_index, commit=commit, profile=bot.profile))

    entries.sort(key=lambda e: e.score, reverse=True)

    record = LeaderboardRecord(
        date=feed.date,
        stage=stage,
        stage_key=stage_key,
        seed=feed.scrim_seed,
        round_seeds=round_seeds,
        entries=tuple(entries),
    )
    return TransformResult(record=record, missing_bots=tuple(missing))


def _reference_profile(feed: ScrimFeed) -> Optional[BotProfile]:
    for bot in feed.bots:
        if bot.deterministic and bot.profile is not None:
            return bot.profile
    return None


def _check_stage(bot_id: str, profile: BotProfile, reference: BotProfile) -> None:
    # Upstream guarantees one stage and seed list per scrim; the first profile wins either way.
    if profile.stage_key != reference.stage_key or profile.round_seeds != reference.round_seeds:
        warn(f"bot {bot_id} has stage {profile.stage_key!r} / seeds differing from {reference.stage_key!r}")


def _disqualified_entry(*, roster_index: int, commit: str, round_count: int) -> LeaderboardEntry:
    rounds = tuple(
        RoundEntry(score=0, gu=0, fc=0, disqualified=NON_DETERMINISTIC, timings=(0, 0)) for _ in range(round_count)
    )
    return LeaderboardEntry(roster_index=roster_index, score=0, gu=0, fc=0, commit=commit, rounds=rounds)


def _scored_entry(*, roster_index: int, commit: str, profile: BotProfile) -> LeaderboardEntry:
    rounds = tuple(
        RoundEntry(
            score=r.score,
            gu=r.gem_utilization,
            fc=r.floor_coverage,
            disqualified=r.disqualified_for,
            timings=(ns_to_ms(r.response_time_median), ns_to_ms(r.response_time_max)),
        )
        for r in profile.rounds
    )
    return LeaderboardEntry(
        roster_index=roster_index,
        score=profile.total_score,
        gu=profile.gem_utilization_mean,
        fc=profile.floor_coverage_mean,
        commit=commit,
        rounds=rounds,
    )
