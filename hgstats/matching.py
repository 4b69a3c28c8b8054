"""Pair commit-table rows from the scrims page with bots from the stats feed.

The scrims page has no bot ids, only name/author/location/score, so matching is
best-effort. Per row, in page order:

1. If exactly one not-yet-matched bot has the row's score, take it.
2. Otherwise take the first not-yet-matched bot whose
   (score, name, author, location) key equals the row's, compared after
   ``normalize_key``.
3. Otherwise the row stays unmatched.

A bot is matched at most once, so when scores collide the earlier row wins.
A unique-score match ignores name/author/location, which can attribute a hash
to the wrong bot when two bots share a score and a third row fails the key
lookup; this is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .feed import ScrimFeed
from .roster import Roster
from .scrims import ScrimRow
from .util import normalize_key


@dataclass(frozen=True)
class MatchCandidate:
    bot_id: str
    score: int
    name: str
    author: str
    location: str


@dataclass(frozen=True)
class MatchResult:
    commits: dict[str, str]  # bot id -> commit hash
    unmatched: int


def candidates_from_feed(feed: ScrimFeed, roster: Roster) -> list[MatchCandidate]:
    """Bots with a profile; author/location come from the roster when the bot is known."""
    out: list[MatchCandidate] = []
    for bot in feed.bots:
        if bot.profile is None:
            continue
        known = roster.get(bot.bot_id)
        out.append(
            MatchCandidate(
                bot_id=bot.bot_id,
                score=bot.profile.total_score,
                name=bot.profile.name or (known.name if known else ""),
                author=known.author if known else "",
                location=known.location if known else "",
            )
        )
    return out


def _key(score: int, name: str, author: str, location: str) -> tuple[int, str, str, str]:
    return (score, normalize_key(name), normalize_key(author), normalize_key(location))


def match_commits(candidates: Iterable[MatchCandidate], rows: Iterable[ScrimRow]) -> MatchResult:
    by_score: dict[int, list[str]] = {}
    by_key: dict[tuple[int, str, str, str], list[str]] = {}
    for c in candidates:
        by_score.setdefault(c.score, []).append(c.bot_id)
        by_key.setdefault(_key(c.score, c.name, c.author, c.location), []).append(c.bot_id)

    commits: dict[str, str] = {}
    used: set[str] = set()
    unmatched = 0

    for row in rows:
        available = [bot_id for bot_id in by_score.get(row.score, []) if bot_id not in used]
        bot_id: Optional[str] = None
        if len(available) == 1:
            bot_id = available[0]
        else:
            key = _key(row.score, row.name, row.author, row.location)
            bot_id = next((b for b in by_key.get(key, []) if b not in used), None)

        if bot_id is None:
            unmatched += 1
            continue
        used.add(bot_id)
        commits[bot_id] = row.commit

    return MatchResult(commits=commits, unmatched=unmatched)
