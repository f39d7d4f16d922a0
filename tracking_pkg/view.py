"""
Order Progress View
Composes progress, activity feed and identity resolution into the snapshot a
tracking page renders
"""
import threading

from tracking_pkg.activity import build_activities, first_present
from tracking_pkg.identity import TrackingIdentityResolver
from tracking_pkg.progress import (
    TRACKING_STEPS,
    canonical_stage,
    canonical_status,
    progress_percent,
    resolve_progress,
)
from tracking_pkg.scheduler import RefreshScheduler, TRACKING_POLL_SECONDS

DISPLAY_ID_FIELDS = ('code', 'number', 'orderNo', 'orderID', 'orderId', 'id', '_id')


def display_order_id(order):
    """Human-facing order reference, or None"""
    value = first_present(order, DISPLAY_ID_FIELDS)
    return str(value) if value is not None else None


def build_progress_snapshot(order, error=None, is_loading=False, steps=TRACKING_STEPS):
    """
    Renderable tracking snapshot for one order

    Args:
        order: Order snapshot dict (may be empty)
        error: User-safe error text, if any
        is_loading: Whether a fetch is in flight
        steps: Display steps of the stepper

    Returns:
        dict: camelCase snapshot
    """
    if not isinstance(order, dict):
        order = {}

    index = resolve_progress(order.get('stage'), order.get('status'), len(steps))
    return {
        'orderId': display_order_id(order),
        'status': canonical_status(order.get('status')) or None,
        'stage': canonical_stage(order.get('stage')) or None,
        'progressIndex': index,
        'progressPercent': progress_percent(index, len(steps)),
        'steps': [
            {'key': step['key'], 'label': step['label'], 'done': i <= index}
            for i, step in enumerate(steps)
        ],
        'activities': [activity.to_dict() for activity in build_activities(order)],
        'isLoading': bool(is_loading),
        'error': error,
    }


class TrackingSession:
    """
    One tracking view instance: private query, public fallback and polling

    Args:
        client: OrderApiClient
        order_id: Order id from the route
        email: Billing email from the tracking link, optional
        interval: Poll interval in seconds
        timer_factory: Passed through to RefreshScheduler
    """

    def __init__(self, client, order_id, email=None, interval=TRACKING_POLL_SECONDS,
                 timer_factory=threading.Timer):
        self.client = client
        self.order_id = order_id
        self.email = email
        self.query = client.watch_order(order_id)
        self.resolver = TrackingIdentityResolver(client.track_order)
        self.scheduler = RefreshScheduler(self.refresh, interval, timer_factory)
        self._torn_down = False

    def mount(self):
        self.query.refetch()
        self.scheduler.start(self.order_id)
        return self.snapshot()

    def refresh(self):
        if self._torn_down:
            return None
        self.query.refetch()
        return self.snapshot()

    def snapshot(self):
        resolved = self.resolver.update(self.order_id, self.email, self.query.state)
        return build_progress_snapshot(resolved.order, error=resolved.error, is_loading=resolved.is_loading)

    def set_params(self, order_id, email=None):
        """Route or link parameters changed"""
        if order_id != self.order_id:
            self.order_id = order_id
            self.query = self.client.watch_order(order_id)
            if not self._torn_down:
                self.query.refetch()
            self.scheduler.set_order_id(order_id)
        self.email = email
        return self.snapshot()

    def on_focus_regained(self):
        self.scheduler.on_focus_regained()

    def on_network_reconnected(self):
        self.scheduler.on_network_reconnected()

    def teardown(self):
        self._torn_down = True
        self.scheduler.stop()
        self.resolver.teardown()
