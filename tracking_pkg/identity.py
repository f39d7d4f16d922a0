"""
Tracking Identity Resolution
Decides whether an order is visible through the signed-in session, and falls
back once to the public (order id + billing email) lookup when it is not
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from tracking_pkg.error_handler import (
    FetchError,
    LOAD_FAILED_MESSAGE,
    TRACK_FAILED_MESSAGE,
    user_safe_message,
)
from logger_config import tracking_logger, mask_email


class Phase(Enum):
    IDLE = 'idle'
    PRIVATE_LOADING = 'private_loading'
    PRIVATE_RESOLVED = 'private_resolved'
    PRIVATE_UNAUTHORIZED = 'private_unauthorized'
    PRIVATE_ERROR = 'private_error'
    FALLBACK_LOADING = 'fallback_loading'
    RESOLVED = 'resolved'
    UNRESOLVED = 'unresolved'


class GuardState(Enum):
    NOT_ATTEMPTED = 'not_attempted'
    ATTEMPTED = 'attempted'


@dataclass(frozen=True)
class QueryState:
    """Private order query as reported by the data layer"""
    data: Optional[dict] = None
    is_loading: bool = False
    error: Optional[Exception] = None

    @property
    def is_unauthorized(self):
        return isinstance(self.error, FetchError) and self.error.is_unauthorized


@dataclass(frozen=True)
class FallbackGuard:
    """Fire-once marker for the public lookup, keyed by (order_id, email)"""
    key: tuple
    state: GuardState = GuardState.NOT_ATTEMPTED

    def attempted(self):
        return FallbackGuard(self.key, GuardState.ATTEMPTED)


@dataclass(frozen=True)
class TrackingSnapshot:
    order: dict = field(default_factory=dict)
    is_loading: bool = False
    error: Optional[str] = None
    phase: Phase = Phase.IDLE


def normalize_email(email):
    if email is None:
        return ''
    return str(email).strip().lower()


def private_phase(private):
    if private.data:
        return Phase.PRIVATE_RESOLVED
    if private.is_loading:
        return Phase.PRIVATE_LOADING
    if private.is_unauthorized:
        return Phase.PRIVATE_UNAUTHORIZED
    if private.error is not None:
        return Phase.PRIVATE_ERROR
    return Phase.IDLE


class TrackingIdentityResolver:
    """
    Resolves the order snapshot a tracking view may show.

    The public lookup is attempted only when an email is present and the
    private query either has nothing to offer (no data, not in flight) or was
    refused with 401/403. It runs at most once per (order_id, email); changing
    either value re-arms it. Its failures are logged, never raised.

    Args:
        fetch_order_public: callable(order_id, email) -> order dict, raises on failure
    """

    def __init__(self, fetch_order_public: Callable[[Any, str], dict]):
        self._fetch_order_public = fetch_order_public
        self._guard = None
        self._fallback_order = None
        self._fallback_error = None
        self._torn_down = False
        self._lock = threading.Lock()
        self.phase = Phase.IDLE

    @property
    def fallback_attempted(self):
        return self._guard is not None and self._guard.state is GuardState.ATTEMPTED

    def _rearm(self, key):
        if self._guard is None or self._guard.key != key:
            self._guard = FallbackGuard(key)
            self._fallback_order = None
            self._fallback_error = None

    def _should_fall_back(self, order_id, email, private):
        if self._torn_down or not order_id or not email:
            return False
        if self._guard.state is GuardState.ATTEMPTED:
            return False
        no_private_data = not private.data and not private.is_loading
        return no_private_data or private.is_unauthorized

    def _run_fallback(self, order_id, email):
        self._guard = self._guard.attempted()
        self.phase = Phase.FALLBACK_LOADING
        tracking_logger.info(
            f"Public tracking fallback for order {order_id} ({mask_email(email)})"
        )
        try:
            order = self._fetch_order_public(order_id, email)
        except Exception as e:
            tracking_logger.warning(f"Public tracking fallback failed for order {order_id}: {e}")
            self._fallback_error = e
            return
        self._fallback_order = order if isinstance(order, dict) else None

    def update(self, order_id, email, private: QueryState) -> TrackingSnapshot:
        """
        Recompute the snapshot for the current parameters and private query state

        Args:
            order_id: Order identifier from the route (may be empty)
            email: Billing email from the tracking link (may be empty)
            private: Current state of the authenticated order query

        Returns:
            TrackingSnapshot: order is never None
        """
        email = normalize_email(email)
        # Poll ticks and the host thread both land here; the guard check and
        # the fallback call happen under one lock
        with self._lock:
            self._rearm((str(order_id or ''), email))

            if self._should_fall_back(order_id, email, private):
                self._run_fallback(order_id, email)

            snapshot = self._snapshot(private)
            self.phase = snapshot.phase
            return snapshot

    def _snapshot(self, private):
        phase = private_phase(private)
        if private.data:
            return TrackingSnapshot(order=private.data, is_loading=private.is_loading, phase=phase)

        if self._fallback_order:
            return TrackingSnapshot(order=self._fallback_order, is_loading=private.is_loading,
                                    phase=Phase.RESOLVED)

        if private.is_loading:
            return TrackingSnapshot(is_loading=True, phase=phase)

        error = None
        if self._fallback_error is not None:
            error = user_safe_message(self._fallback_error, TRACK_FAILED_MESSAGE)
        elif private.error is not None:
            error = user_safe_message(private.error, LOAD_FAILED_MESSAGE)

        if phase is Phase.IDLE and error is None and not self.fallback_attempted:
            return TrackingSnapshot(phase=Phase.IDLE)
        return TrackingSnapshot(error=error, phase=Phase.UNRESOLVED)

    def teardown(self):
        """No further public lookups for this view instance"""
        self._torn_down = True
