"""
Refresh Scheduler
Fixed-interval re-fetch of an order query, tied to the lifetime of the view
that owns it
"""
import threading
from functools import partial

from logger_config import tracking_logger

TRACKING_POLL_SECONDS = 10
ORDER_LIST_POLL_SECONDS = 15


class RefreshScheduler:
    """
    Owns the polling timer for one view.

    The timer is armed only while started and while an order id is known.
    A failed refetch is logged and the next tick is scheduled as usual; there
    is no backoff.

    Args:
        refetch: zero-argument callable that refreshes the query
        interval: seconds between ticks
        timer_factory: callable(interval, function) returning an object with
            start() and cancel(); threading.Timer by default
    """

    def __init__(self, refetch, interval=TRACKING_POLL_SECONDS, timer_factory=threading.Timer):
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self.refetch = refetch
        self.interval = interval
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._generation = 0
        self._running = False
        self._order_id = None

    @property
    def is_running(self):
        return self._running

    @property
    def is_armed(self):
        return self._timer is not None

    def start(self, order_id=None):
        with self._lock:
            self._running = True
            if order_id is not None:
                self._order_id = order_id
            self._arm()

    def stop(self):
        with self._lock:
            self._running = False
            self._disarm()
        tracking_logger.debug(f"Polling stopped for order {self._order_id}")

    def set_order_id(self, order_id):
        """Suspend polling while the id is empty, resume when it comes back"""
        with self._lock:
            if order_id == self._order_id:
                return
            self._order_id = order_id
            self._disarm()
            if self._running:
                self._arm()

    def on_focus_regained(self):
        self._refetch_now('focus')

    def on_network_reconnected(self):
        self._refetch_now('reconnect')

    def _refetch_now(self, reason):
        if not self._running or not self._order_id:
            return
        tracking_logger.debug(f"Refetching order {self._order_id} on {reason}")
        self._safe_refetch()

    def _arm(self):
        # Caller holds the lock
        if not self._running or not self._order_id or self._timer is not None:
            return
        self._generation += 1
        timer = self._timer_factory(self.interval, partial(self._tick, self._generation))
        if hasattr(timer, 'daemon'):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def _disarm(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _safe_refetch(self):
        try:
            self.refetch()
        except Exception as e:
            tracking_logger.warning(f"Poll for order {self._order_id} failed: {e}")

    def _tick(self, generation):
        # A timer cancelled after it began firing must not touch its successor
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
            if not self._running or not self._order_id:
                return
        self._safe_refetch()
        with self._lock:
            if generation == self._generation:
                self._arm()
