from __future__ import annotations

import gzip
import json

import pytest

from factories import NON_DET, FakeResponse, FakeSession, det, feed_doc, json_response, make_round
from hgstats.config import HTTP_TIMEOUT_S, Endpoints
from hgstats.errors import DecodeError, FetchError
from hgstats.feed import decode_scrim_feed, fetch_scrim_feed, parse_scrim_feed


FEED_URL = "https://hiddengems.gymnasiumsteglitz.de/dl/stats/2025-11-17.json.gz"


def test_endpoints_build_urls():
    ep = Endpoints(base_url="http://localhost:8000/")
    assert ep.feed_url("2025-11-17") == "http://localhost:8000/dl/stats/2025-11-17.json.gz"
    assert ep.scrims_url() == "http://localhost:8000/scrims"


def test_fetch_scrim_feed_parses_document():
    doc = feed_doc({"a": det("Alpha", 500), "c": NON_DET})
    session = FakeSession({FEED_URL: json_response(doc)})

    feed = fetch_scrim_feed(day="2025-11-17", session=session)

    assert feed.date == "2025-11-17"
    assert feed.scrim_seed == "scrim-seed"
    assert [b.bot_id for b in feed.bots] == ["a", "c"]
    alpha, c = feed.bots
    assert alpha.deterministic and alpha.profile is not None
    assert alpha.profile.total_score == 500
    assert alpha.profile.round_seeds == ("s1", "s2")
    assert alpha.profile.rounds[0].response_time_median == 1234567
    assert not c.deterministic and c.profile is None
    assert c.raw == {"deterministic": False}
    assert session.calls[0]["timeout"] == HTTP_TIMEOUT_S
    assert "User-Agent" in session.calls[0]["headers"]


def test_fetch_scrim_feed_raises_fetch_error_with_status():
    session = FakeSession({FEED_URL: FakeResponse(503, b"", "Service Unavailable")})
    with pytest.raises(FetchError) as info:
        fetch_scrim_feed(day="2025-11-17", session=session)
    assert info.value.status == 503
    assert "503" in str(info.value)


def test_missing_day_is_a_fetch_error():
    with pytest.raises(FetchError) as info:
        fetch_scrim_feed(day="2025-11-17", session=FakeSession({}))
    assert info.value.status == 404


def test_raw_gzip_body_is_decompressed():
    doc = feed_doc({"a": det("Alpha", 500)})
    body = gzip.compress(json.dumps(doc).encode("utf-8"))
    feed = decode_scrim_feed(body)
    assert feed.bots[0].profile is not None
    assert feed.bots[0].profile.name == "Alpha"


@pytest.mark.parametrize(
    "body",
    [
        b"<html>not json</html>",
        b"\x1f\x8bbroken gzip",
        b"[]",
        b'{"date": "2025-11-17", "scrim_seed": "x"}',
        b'{"date": "2025-11-17", "scrim_seed": "x", "bots": {"a": 3}}',
    ],
)
def test_bad_bodies_raise_decode_error(body):
    with pytest.raises(DecodeError):
        decode_scrim_feed(body)


def test_profile_without_rounds_is_a_decode_error():
    bot = det("Alpha", 1)
    del bot["profile"]["rounds"]
    with pytest.raises(DecodeError):
        parse_scrim_feed(feed_doc({"a": bot}))


def test_round_optional_fields():
    rounds = [make_round("s1", disqualified_for="timeout", median=None, maximum=None)]
    rounds[0]["ticks_to_first_capture"] = 42
    feed = parse_scrim_feed(feed_doc({"a": det("Alpha", 0, rounds=rounds)}))
    r = feed.bots[0].profile.rounds[0]
    assert r.disqualified_for == "timeout"
    assert r.response_time_median is None
    assert r.response_time_max is None
    assert r.ticks_to_first_capture == 42


def test_deterministic_bot_without_profile_is_kept_without_profile():
    feed = parse_scrim_feed(feed_doc({"a": {"deterministic": True}}))
    assert feed.bots[0].deterministic
    assert feed.bots[0].profile is None
