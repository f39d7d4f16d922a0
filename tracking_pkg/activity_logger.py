"""
Order Timeline Logger
Appends entries to an order's status timeline on behalf of customers, staff
and the system
"""
from flask import current_app
from datetime import datetime, timedelta, timezone

from tracking_pkg.models import db, OrderStatusHistory
from logger_config import app_logger

DEFAULT_DEDUPE_SECONDS = 30


def last_timeline_entry(order):
    history = order.status_history
    return history[-1] if history else None


def is_recent_duplicate(order, code, now=None, window_seconds=None):
    """
    True when the newest timeline entry has the same code and is younger
    than the de-dupe window

    Args:
        order: Order instance
        code: Timeline code about to be appended
        now: Reference time (defaults to utcnow)
        window_seconds: Window length; the app config value when omitted
    """
    if window_seconds is None:
        window_seconds = current_app.config.get('TIMELINE_DEDUPE_SECONDS', DEFAULT_DEDUPE_SECONDS)
    now = now or datetime.utcnow()

    last = last_timeline_entry(order)
    if last is None or last.code != code or last.created_at is None:
        return False
    return now - last.created_at < timedelta(seconds=window_seconds)


def record_timeline_event(order, code, note, actor_type, actor_id=None, at=None, dedupe=False):
    """
    Append a timeline entry to an order (caller commits)

    Args:
        order: Order instance
        code: Event code ('cancelled', 'shipped', ...)
        note: Human-readable note
        actor_type: 'customer', 'admin', 'manager' or 'system'
        actor_id: ID of the acting user
        at: Event time (defaults to now)
        dedupe: Skip the append when the last entry repeats the same code
            within the configured window

    Returns:
        OrderStatusHistory: The new entry, or None when skipped
    """
    at = at or datetime.utcnow()
    if at.tzinfo is not None:
        # Columns hold naive UTC
        at = at.astimezone(timezone.utc).replace(tzinfo=None)
    if dedupe and is_recent_duplicate(order, code, now=at):
        app_logger.info(f"Timeline entry '{code}' for order {order.id} skipped (duplicate within window)")
        return None

    entry = OrderStatusHistory(
        code=code,
        note=note,
        changed_by_type=actor_type,
        changed_by_id=actor_id,
        created_at=at,
    )
    order.status_history.append(entry)
    db.session.add(entry)

    app_logger.info(f"Timeline entry '{code}' added to order {order.id} by {actor_type} #{actor_id}")
    return entry
