from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Callable, Iterable, Optional, Union

import requests
from lxml import etree, html

from .config import HTTP_TIMEOUT_S, USER_AGENT, Endpoints
from .errors import FetchError, ParseError
from .util import html_to_text, normalize_key, parse_german_date, parse_number, parse_score


_STAGE_HEADING_RE = re.compile(r"^stage\s*#\s*(?P<number>\d+)$", re.IGNORECASE)
_LOGO_SUFFIX_RE = re.compile(r"-logo.*$", re.IGNORECASE)

HtmlInput = Union[str, bytes]


@dataclass(frozen=True)
class ScrimRow:
    """One row of the commit table on the scrims page."""

    name: str
    author: str
    location: str
    score: int
    commit: str


@dataclass(frozen=True)
class ColumnRule:
    field: str
    matches: Callable[[str], bool]  # gets the normalized header text
    default_index: int


# Column layout of the commit table. Headers are German ("Autor / Team", "Ort").
COMMIT_TABLE_COLUMNS: tuple[ColumnRule, ...] = (
    ColumnRule(field="name", matches=lambda h: h == "bot", default_index=2),
    ColumnRule(field="score", matches=lambda h: h == "score", default_index=3),
    ColumnRule(field="author", matches=lambda h: "autor" in h and "team" in h, default_index=7),
    ColumnRule(field="location", matches=lambda h: h == "ort", default_index=8),
    ColumnRule(field="commit", matches=lambda h: h == "commit", default_index=10),
)

_REQUIRED_FIELDS = ("name", "score", "commit")


def fetch_scrims_html(
    *,
    endpoints: Endpoints = Endpoints(),
    session: Optional[requests.Session] = None,
) -> bytes:
    url = endpoints.scrims_url()
    print(f"Fetching {url}")
    sess = session or requests.Session()
    headers = {"User-Agent": USER_AGENT}
    resp = sess.get(url, headers=headers, timeout=HTTP_TIMEOUT_S)
    if not resp.ok:
        raise FetchError(url, resp.status_code, resp.reason)
    return resp.content


def cell_text(el: html.HtmlElement) -> str:
    return html_to_text(html.tostring(el, encoding="unicode", with_tail=False))


def resolve_columns(headers: Iterable[str], rules: Iterable[ColumnRule] = COMMIT_TABLE_COLUMNS) -> dict[str, int]:
    """Map field name -> cell index, from header texts where recognised, else the rule's default."""
    normalized = [normalize_key(h) for h in headers]
    out: dict[str, int] = {}
    for rule in rules:
        idx = next((i for i, h in enumerate(normalized) if rule.matches(h)), None)
        out[rule.field] = idx if idx is not None else rule.default_index
    return out


def extract_scrim_rows(page: HtmlInput) -> list[ScrimRow]:
    """Rows of the table that has a ``Commit`` header; raises ParseError if there is no such table."""
    doc = _parse_document(page)
    table = _find_commit_table(doc)
    if table is None:
        raise ParseError("No table with a 'Commit' column on scrims page")

    columns = resolve_columns(_header_texts(table))
    needed = max(columns[f] for f in _REQUIRED_FIELDS)

    out: list[ScrimRow] = []
    for tr in _body_rows(table):
        if _has_class(tr, "spacer"):
            continue
        cells = tr.xpath("./td")
        if len(cells) <= needed:
            continue

        name = _blank_if_dash(cell_text(cells[columns["name"]]))
        score = parse_score(cell_text(cells[columns["score"]]))
        commit = _blank_if_dash(cell_text(cells[columns["commit"]]))
        if not name or score is None or not commit:
            continue

        out.append(
            ScrimRow(
                name=name,
                author=_optional_cell(cells, columns["author"]),
                location=_optional_cell(cells, columns["location"]),
                score=score,
                commit=commit,
            )
        )
    return out


def _optional_cell(cells: list[html.HtmlElement], idx: int) -> str:
    return cell_text(cells[idx]) if idx < len(cells) else ""


def _parse_document(page: HtmlInput) -> Optional[html.HtmlElement]:
    if not page or not page.strip():
        return None
    try:
        return html.fromstring(page)
    except (etree.ParserError, ValueError):
        return None


def _find_commit_table(doc: Optional[html.HtmlElement]) -> Optional[html.HtmlElement]:
    if doc is None:
        return None
    for th in doc.xpath("//th"):
        if normalize_key(cell_text(th)) != "commit":
            continue
        # Innermost table around the header; the page may wrap it in a layout table.
        tables = th.xpath("ancestor::table[1]")
        if tables:
            return tables[0]
    return None


def _header_texts(table: html.HtmlElement) -> list[str]:
    header_rows = table.xpath("./thead/tr[1]")
    if not header_rows:
        header_rows = [tr for tr in _all_rows(table) if tr.xpath("./th")][:1]
    if not header_rows:
        return []
    return [cell_text(c) for c in header_rows[0].xpath("./th|./td")]


def _all_rows(table: html.HtmlElement) -> list[html.HtmlElement]:
    return table.xpath("./tr|./thead/tr|./tbody/tr|./tfoot/tr")


def _body_rows(table: html.HtmlElement) -> list[html.HtmlElement]:
    rows = table.xpath("./tbody/tr")
    if rows:
        return rows
    return [tr for tr in table.xpath("./tr") if tr.xpath("./td")]


def _has_class(el: html.HtmlElement, name: str) -> bool:
    return name in (el.get("class") or "").split()


def _blank_if_dash(text: str) -> str:
    # The page renders "no data" as a dash.
    return text if normalize_key(text) else ""


# --- Full page snapshot (older data.json generation) -------------------------


@dataclass(frozen=True)
class LegacyEntry:
    student: bool
    emoji: str
    bot: str
    score: float
    gu: float
    cf: float
    fc: float
    author: str
    location: str
    language: str
    commit: str


@dataclass(frozen=True)
class LegacyLeaderboard:
    date: str
    stage: str
    seed: str
    entries: tuple[LegacyEntry, ...]

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "stage": self.stage,
            "seed": self.seed,
            "entries": [asdict(e) for e in self.entries],
        }


def parse_scrims_snapshot(page: HtmlInput) -> LegacyLeaderboard:
    doc = _parse_document(page)
    if doc is None:
        raise ParseError("Scrims page is empty")

    date_text = _box_text(doc, "Datum")
    stage_number, stage_name = _stage_box(doc)
    stage = f"Stage #{stage_number}: {stage_name}" if stage_name else f"Stage #{stage_number}"

    return LegacyLeaderboard(
        date=parse_german_date(date_text) or date_text,
        stage=stage,
        seed=_seed_box(doc),
        entries=tuple(_snapshot_entries(doc)),
    )


def _box_paragraph(doc: html.HtmlElement, matches: Callable[[str], bool], label: str) -> tuple[html.HtmlElement, str]:
    for h3 in doc.xpath("//h3"):
        heading = cell_text(h3)
        if not matches(heading):
            continue
        paragraphs = h3.xpath("following::p[1]")
        if paragraphs:
            return paragraphs[0], heading
    raise ParseError(f"Unable to find {label!r} box on scrims page")


def _box_text(doc: html.HtmlElement, label: str) -> str:
    p, _ = _box_paragraph(doc, lambda h: h.lower() == label.lower(), label)
    return cell_text(p)


def _stage_box(doc: html.HtmlElement) -> tuple[str, str]:
    p, heading = _box_paragraph(doc, lambda h: bool(_STAGE_HEADING_RE.match(h)), "Stage")
    m = _STAGE_HEADING_RE.match(heading)
    return (m.group("number") if m else ""), cell_text(p)


def _seed_box(doc: html.HtmlElement) -> str:
    p, _ = _box_paragraph(doc, lambda h: h.lower() == "seed", "Seed")
    spans = p.xpath(".//span")
    return cell_text(spans[0]) if spans else cell_text(p)


def _snapshot_entries(doc: html.HtmlElement) -> list[LegacyEntry]:
    headings = [h2 for h2 in doc.xpath("//h2") if cell_text(h2).lower() == "bestenliste"]
    if not headings:
        raise ParseError("Unable to find 'Bestenliste' heading on scrims page")
    tables = headings[0].xpath("following::table[1]")
    if not tables:
        raise ParseError("Unable to find leaderboard table on scrims page")

    out: list[LegacyEntry] = []
    for tr in _body_rows(tables[0]):
        if _has_class(tr, "spacer"):
            continue
        cells = tr.xpath("./td")
        if len(cells) < 11:
            continue
        texts = [cell_text(c) for c in cells]
        out.append(
            LegacyEntry(
                student=not _has_class(tr, "baseline"),
                emoji=texts[1],
                bot=texts[2],
                score=parse_number(texts[3]),
                gu=parse_number(texts[4], allow_percent=True),
                cf=parse_number(texts[5], allow_percent=True),
                fc=parse_number(texts[6], allow_percent=True),
                author=texts[7],
                location=texts[8],
                language=_language(cells[9]),
                commit=texts[10],
            )
        )

    if not out:
        raise ParseError("No leaderboard entries parsed from scrims page")
    return out


def _language(cell: html.HtmlElement) -> str:
    # Language is shown as a logo, e.g. /img/rust-logo.svg -> "rust"
    srcs = cell.xpath(".//img/@src")
    if not srcs:
        return cell_text(cell)
    filename = str(srcs[0]).split("/")[-1].split("?")[0]
    return _LOGO_SUFFIX_RE.sub("", filename).split(".")[0]
