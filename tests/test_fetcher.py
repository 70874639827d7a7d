import pytest
import requests

from config import SyncSettings
from conftest import FakeClock, FakeResponse
from logic.errors import UnsupportedProvider, UpstreamUnavailable

PRIMARY = "https://lc-primary.test/alice"
FALLBACK = "https://lc-fallback.test/alice"


def test_first_valid_response_wins(make_fetcher, sleep_spy):
    fetcher, session = make_fetcher({
        PRIMARY: [FakeResponse({"totalSolved": 3})],
        FALLBACK: [FakeResponse({"totalSolved": 99})],
    })

    result = fetcher.fetch("leetcode", "alice")

    assert result.payload == {"totalSolved": 3}
    assert result.endpoint == PRIMARY
    assert result.attempts == 1
    assert [url for url, _ in session.calls] == [PRIMARY]
    assert sleep_spy.calls == []


def test_timeouts_retry_then_fall_back(make_fetcher, sleep_spy):
    fetcher, session = make_fetcher({
        PRIMARY: [requests.Timeout("read timed out")],
        FALLBACK: [FakeResponse({"totalSolved": 9})],
    })

    result = fetcher.fetch("leetcode", "alice")

    assert result.endpoint == FALLBACK
    assert result.attempts == 4
    assert [url for url, _ in session.calls] == [PRIMARY, PRIMARY, PRIMARY, FALLBACK]
    # backoff only between attempts on the same endpoint
    assert sleep_spy.calls == [2.0, 2.0]
    assert all(timeout == 10.0 for _, timeout in session.calls)


def test_error_field_and_bad_status_are_retried(make_fetcher, sleep_spy):
    fetcher, session = make_fetcher({
        PRIMARY: [
            FakeResponse({"errors": [{"message": "User does not exist"}]}),
            FakeResponse(None, status_code=502, reason="Bad Gateway"),
            FakeResponse({"totalSolved": 1}),
        ],
    })

    result = fetcher.fetch("leetcode", "alice")

    assert result.attempts == 3
    assert result.payload == {"totalSolved": 1}
    assert sleep_spy.calls == [2.0, 2.0]


def test_non_object_and_bad_json_are_invalid(make_fetcher):
    fetcher, _ = make_fetcher({
        PRIMARY: [FakeResponse(["nope"]), FakeResponse(bad_json=True), FakeResponse("text")],
        FALLBACK: [FakeResponse({"ok": True})],
    })

    assert fetcher.fetch("leetcode", "alice").endpoint == FALLBACK


def test_all_endpoints_exhausted(make_fetcher, sleep_spy):
    fetcher, session = make_fetcher({
        PRIMARY: [requests.ConnectionError("connection refused")],
        FALLBACK: [FakeResponse({"error": "rate limited"}, status_code=429, reason="Too Many Requests")],
    })

    with pytest.raises(UpstreamUnavailable) as excinfo:
        fetcher.fetch("leetcode", "alice")

    assert len(session.calls) == 6
    assert len(sleep_spy.calls) == 4
    assert excinfo.value.status_code == 503
    assert "HTTP 429" in excinfo.value.details
    body = excinfo.value.to_dict()
    assert set(body) == {"error", "details", "suggestion"}


def test_attempt_limits_come_from_settings(make_fetcher, sleep_spy):
    settings = SyncSettings(max_attempts=1, attempt_timeout_ms=2500)
    fetcher, session = make_fetcher({PRIMARY: [requests.Timeout("slow")]}, settings=settings)

    with pytest.raises(UpstreamUnavailable):
        fetcher.fetch("leetcode", "alice")

    assert session.calls == [(PRIMARY, 2.5), (FALLBACK, 2.5)]
    assert sleep_spy.calls == []


def test_unknown_provider(make_fetcher):
    fetcher, _ = make_fetcher({})
    with pytest.raises(UnsupportedProvider):
        fetcher.fetch("interviewbit", "alice")


def test_slow_body_hits_the_attempt_deadline(make_fetcher):
    clock = FakeClock()
    settings = SyncSettings(max_attempts=1, attempt_timeout_ms=1000)
    trickle = FakeResponse(chunks=[b'{"total', b'Solved"', b": 3}"], clock=clock, chunk_delay=0.6)
    fetcher, _ = make_fetcher({PRIMARY: [trickle], FALLBACK: [FakeResponse({"totalSolved": 4})]}, settings=settings, clock=clock)

    result = fetcher.fetch("leetcode", "alice")

    assert result.endpoint == FALLBACK
    assert result.payload == {"totalSolved": 4}
    assert trickle.closed


def test_slow_body_on_every_endpoint_is_unavailable(make_fetcher):
    clock = FakeClock()
    settings = SyncSettings(max_attempts=1, attempt_timeout_ms=1000)
    fetcher, _ = make_fetcher({
        PRIMARY: [FakeResponse(chunks=[b"{", b"}"], clock=clock, chunk_delay=2.0)],
        FALLBACK: [FakeResponse(chunks=[b"{", b"}"], clock=clock, chunk_delay=2.0)],
    }, settings=settings, clock=clock)

    with pytest.raises(UpstreamUnavailable) as excinfo:
        fetcher.fetch("leetcode", "alice")

    assert "Attempt exceeded 1.0s" in excinfo.value.details


def test_chunked_body_within_deadline_is_joined(make_fetcher):
    clock = FakeClock()
    fetcher, _ = make_fetcher({
        PRIMARY: [FakeResponse(chunks=[b'{"total', b'Solved"', b": 3}"], clock=clock, chunk_delay=0.5)],
    }, clock=clock)

    assert fetcher.fetch("leetcode", "alice").payload == {"totalSolved": 3}


def test_username_is_escaped_into_the_url(make_fetcher):
    fetcher, session = make_fetcher({
        "https://lc-primary.test/a%20b%2Fc%3F": [FakeResponse({"totalSolved": 1})],
    })

    assert fetcher.endpoints_for("leetcode", "a b/c?") == [
        "https://lc-primary.test/a%20b%2Fc%3F",
        "https://lc-fallback.test/a%20b%2Fc%3F",
    ]
    result = fetcher.fetch("leetcode", "a b/c?")
    assert session.calls[0][0] == "https://lc-primary.test/a%20b%2Fc%3F"
    assert result.attempts == 1
