import threading

import pytest

from tracking_pkg.error_handler import FetchError, LOAD_FAILED_MESSAGE, TRACK_FAILED_MESSAGE
from tracking_pkg.identity import Phase, QueryState, TrackingIdentityResolver

ORDER = {"id": 7, "status": "in_progress", "stage": "road"}


class FakePublicLookup:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result if result is not None else dict(ORDER)
        self.error = error

    def __call__(self, order_id, email):
        self.calls.append((order_id, email))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def lookup():
    return FakePublicLookup()


@pytest.fixture
def resolver(lookup):
    return TrackingIdentityResolver(lookup)


def test_pending_private_fetch_never_falls_back(resolver, lookup):
    for _ in range(3):
        snapshot = resolver.update("7", "a@b.com", QueryState(is_loading=True))
        assert snapshot.is_loading is True
        assert snapshot.order == {}
    assert lookup.calls == []


def test_forbidden_with_email_falls_back_exactly_once(resolver, lookup):
    resolver.update("7", "a@b.com", QueryState(is_loading=True))
    forbidden = QueryState(error=FetchError(403, "Forbidden"))

    first = resolver.update("7", "a@b.com", forbidden)
    second = resolver.update("7", "a@b.com", forbidden)

    assert len(lookup.calls) == 1
    assert first.order == ORDER
    assert first.phase is Phase.RESOLVED
    assert second.order == ORDER


def test_unauthorized_without_email_surfaces_load_error(resolver, lookup):
    snapshot = resolver.update("7", "", QueryState(error=FetchError(401)))
    assert lookup.calls == []
    assert snapshot.error == LOAD_FAILED_MESSAGE
    assert snapshot.order == {}
    assert snapshot.phase is Phase.UNRESOLVED


def test_private_data_wins(resolver, lookup):
    snapshot = resolver.update("7", "a@b.com", QueryState(data=ORDER))
    assert snapshot.order == ORDER
    assert snapshot.phase is Phase.PRIVATE_RESOLVED
    assert lookup.calls == []


def test_parameter_change_rearms_fallback(resolver, lookup):
    forbidden = QueryState(error=FetchError(403))
    resolver.update("7", "a@b.com", forbidden)
    resolver.update("7", "A@B.com ", forbidden)
    assert len(lookup.calls) == 1

    resolver.update("7", "other@b.com", forbidden)
    resolver.update("8", "other@b.com", forbidden)
    assert [call[1] for call in lookup.calls] == ["a@b.com", "other@b.com", "other@b.com"]
    assert lookup.calls[-1][0] == "8"


def test_fallback_failure_is_user_safe(lookup, resolver):
    lookup.error = FetchError(500, "Traceback: database exploded")
    snapshot = resolver.update("7", "a@b.com", QueryState(error=FetchError(403)))
    assert snapshot.error == TRACK_FAILED_MESSAGE
    assert "database" not in snapshot.error
    assert snapshot.order == {}


def test_fallback_not_found_message(lookup, resolver):
    lookup.error = FetchError(404)
    snapshot = resolver.update("7", "a@b.com", QueryState(error=FetchError(403)))
    assert snapshot.error.startswith("Order not found")


def test_transient_private_error_also_falls_back(resolver, lookup):
    snapshot = resolver.update("7", "a@b.com", QueryState(error=FetchError(None, "Network error")))
    assert len(lookup.calls) == 1
    assert snapshot.order == ORDER


def test_missing_order_id_is_idle(resolver, lookup):
    snapshot = resolver.update("", "a@b.com", QueryState())
    assert snapshot.phase is Phase.IDLE
    assert snapshot.error is None
    assert lookup.calls == []


def test_teardown_stops_fallbacks(resolver, lookup):
    resolver.teardown()
    resolver.update("7", "a@b.com", QueryState(error=FetchError(403)))
    assert lookup.calls == []
    assert resolver.fallback_attempted is False


def test_concurrent_updates_fire_one_fallback():
    forbidden = QueryState(error=FetchError(403, "Forbidden"))
    calls = []
    others = []
    held_back = []

    def slow_lookup(order_id, email):
        calls.append((order_id, email))
        if not others:
            # A poll tick arrives while the first lookup is still in flight
            other = threading.Thread(target=resolver.update, args=("7", "a@b.com", forbidden))
            others.append(other)
            other.start()
            other.join(timeout=0.2)
            held_back.append(other.is_alive())
        return dict(ORDER)

    resolver = TrackingIdentityResolver(slow_lookup)
    snapshot = resolver.update("7", "a@b.com", forbidden)
    others[0].join(timeout=5)

    assert held_back == [True]
    assert not others[0].is_alive()
    assert calls == [("7", "a@b.com")]
    assert snapshot.order == ORDER
