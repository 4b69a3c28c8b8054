from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import RosterError


@dataclass(frozen=True)
class RosterBot:
    id: str
    student: bool
    emoji: str
    name: str
    author: str
    location: str
    language: str


@dataclass(frozen=True)
class Roster:
    """Known bots; a bot's position in the list is the index stored in leaderboard entries."""

    bots: tuple[RosterBot, ...]
    _index_by_id: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, int] = {}
        for i, bot in enumerate(self.bots):
            # First occurrence wins, matching a front-to-back lookup in the array.
            index.setdefault(bot.id, i)
        object.__setattr__(self, "_index_by_id", index)

    def __len__(self) -> int:
        return len(self.bots)

    def index_of(self, bot_id: str) -> Optional[int]:
        return self._index_by_id.get(bot_id)

    def get(self, bot_id: str) -> Optional[RosterBot]:
        idx = self.index_of(bot_id)
        return self.bots[idx] if idx is not None else None

    @classmethod
    def from_list(cls, items: Iterable[Any]) -> "Roster":
        bots = []
        for i, item in enumerate(items):
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                raise RosterError(f"Roster entry {i} has no string 'id'")
            bots.append(
                RosterBot(
                    id=item["id"],
                    student=bool(item.get("student", False)),
                    emoji=str(item.get("emoji") or ""),
                    name=str(item.get("name") or ""),
                    author=str(item.get("author") or ""),
                    location=str(item.get("location") or ""),
                    language=str(item.get("language") or ""),
                )
            )
        return cls(bots=tuple(bots))


def load_roster(path: Path) -> Roster:
    if not path.exists():
        raise RosterError(f"Roster not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise RosterError(f"Roster is not valid JSON: {path} ({exc})") from exc
    if not isinstance(data, list):
        raise RosterError(f"Roster is not a JSON array: {path}")
    return Roster.from_list(data)
