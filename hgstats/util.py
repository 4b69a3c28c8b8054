from __future__ import annotations

import math
import re
import sys
from datetime import date
from html.entities import name2codepoint
from typing import Optional


_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&(#[xX][0-9a-fA-F]+|#\d+|[A-Za-z][A-Za-z0-9]*);")
_WS_RE = re.compile(r"\s+")
_DASHES = str.maketrans({"\u2010": "-", "\u2011": "-", "\u2012": "-", "\u2013": "-", "\u2014": "-", "\u2212": "-"})

_NAMED_ENTITIES = {name: chr(cp) for name, cp in name2codepoint.items()}
_NAMED_ENTITIES["apos"] = "'"

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_GERMAN_NUMERIC_DATE_RE = re.compile(r"^(?P<day>\d{1,2})\.(?P<month>\d{1,2})\.(?P<year>\d{4})$")
_GERMAN_LONG_DATE_RE = re.compile(r"^(?P<day>\d{1,2})\.\s*(?P<month>[A-Za-zÄÖÜäöüß]+)\s+(?P<year>\d{4})$")

_GERMAN_MONTHS = {
    "januar": 1,
    "februar": 2,
    "märz": 3,
    "maerz": 3,
    "april": 4,
    "mai": 5,
    "juni": 6,
    "juli": 7,
    "august": 8,
    "september": 9,
    "oktober": 10,
    "november": 11,
    "dezember": 12,
}


def decode_entities(text: str) -> str:
    """Decode numeric and named HTML entities; unknown escapes are kept as-is."""
    return _ENTITY_RE.sub(_decode_entity, text or "")


def _decode_entity(match: re.Match[str]) -> str:
    entity = match.group(1)
    if entity[0] == "#":
        try:
            if entity[1] in "xX":
                return chr(int(entity[2:], 16))
            return chr(int(entity[1:]))
        except (ValueError, OverflowError):
            return match.group(0)
    return _NAMED_ENTITIES.get(entity, match.group(0))


def html_to_text(fragment: str) -> str:
    """Plain text of an HTML fragment: no tags, decoded entities, single spaces."""
    text = _SCRIPT_STYLE_RE.sub("", fragment or "")
    text = _TAG_RE.sub("", text)
    text = decode_entities(text)
    return _WS_RE.sub(" ", text).strip()


def normalize_key(text: str) -> str:
    """Comparable form of a free-text field: lower-case, plain hyphens, "-" means empty."""
    cleaned = (text or "").replace("\u00a0", " ").translate(_DASHES)
    cleaned = _WS_RE.sub(" ", cleaned).strip().lower()
    if cleaned == "-":
        return ""
    return cleaned


def ns_to_ms(ns: Optional[float]) -> float:
    """Nanoseconds to milliseconds, rounded half-up to one decimal."""
    if ns is None:
        return 0.0
    return math.floor(ns / 100000 + 0.5) / 10


def parse_score(text: str) -> Optional[int]:
    # Scores can be rendered with thousands separators ("1.234").
    digits = re.sub(r"[^\d]", "", text or "")
    if not digits:
        return None
    return int(digits)


def parse_number(text: str, *, allow_percent: bool = False) -> float | int:
    """Lenient number parsing for table cells; empty or dash means 0.

    A dot is always a decimal point, so a German thousands separator is misread:
    "1.000" parses as 1, not 1000. Use ``parse_score`` for integer score cells.
    """
    trimmed = (text or "").strip()
    if normalize_key(trimmed) == "":
        return 0
    if allow_percent:
        trimmed = trimmed.replace("%", "")
    numeric = re.sub(r"[^\d.\-+]", "", trimmed)
    if numeric in {"", "-", "+"}:
        return 0
    m = re.match(r"[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?", numeric)
    if not m:
        raise ValueError(f"Unable to parse number from {text!r}")
    value = float(m.group(0))
    return int(value) if value.is_integer() else value


def parse_german_date(value: str) -> Optional[str]:
    """German date ("17.11.2025" or "17. November 2025") to ISO YYYY-MM-DD."""
    text = (value or "").strip()
    m = _GERMAN_NUMERIC_DATE_RE.match(text)
    if m:
        month = int(m.group("month"))
    else:
        m = _GERMAN_LONG_DATE_RE.match(text)
        if not m:
            return None
        month = _GERMAN_MONTHS.get(m.group("month").lower(), 0)
        if not month:
            return None
    try:
        return date(int(m.group("year")), month, int(m.group("day"))).isoformat()
    except ValueError:
        return None


def is_iso_date(value: str) -> bool:
    if not _ISO_DATE_RE.match(value or ""):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def today_iso() -> str:
    # Local calendar day, not UTC.
    return date.today().isoformat()


def warn(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)
