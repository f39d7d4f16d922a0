"""
Order Activity Timeline
Merges the structured status timeline, legacy activity logs and bootstrap
timestamps of an order snapshot into one de-duplicated feed, newest first
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from tracking_pkg.progress import canonical_status

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Legacy collections an order snapshot may carry besides statusTimeline
LEGACY_COLLECTIONS = ('activities', 'timeline', 'history', 'events')

# Candidate keys per logical field, first present wins
FIELD_ALIASES = {
    'code': ('type', 'key', 'stage', 'status', 'label', 'code'),
    'text': ('text', 'message', 'label', 'note'),
    'at': ('date', 'at', 'time', 'createdAt', 'timestamp'),
}

ICON_BY_CODE = {
    'created': 'task-alt',
    'placed': 'task-alt',
    'verified': 'check-circle',
    'confirmed': 'task-alt',
    'packaging': 'inventory',
    'packing': 'inventory',
    'shipped': 'local-shipping',
    'road': 'local-shipping',
    'lastmile': 'place',
    'delivered': 'handshake',
    'completed': 'handshake',
    'cancelled': 'cancel',
    'default': 'check-circle',
}

BOOTSTRAP_TEXT = {
    'created': 'Your order has been confirmed.',
    'delivered': 'Your order has been delivered. Thank you for shopping!',
    'cancelled': 'Your order has been cancelled.',
}


@dataclass(frozen=True)
class Activity:
    code: str
    text: str
    at: Any
    icon: str
    dedupe_key: str
    timestamp: Optional[datetime] = field(default=None, compare=False)

    def to_dict(self):
        return {
            'code': self.code,
            'text': self.text,
            'at': self.at.isoformat() if isinstance(self.at, datetime) else self.at,
            'icon': self.icon,
        }


def is_present(value):
    return value is not None and value != ''


def first_present(entry, keys):
    """Return the first present value among keys of a dict-like entry"""
    if not isinstance(entry, dict):
        return None
    for key in keys:
        value = entry.get(key)
        if is_present(value):
            return value
    return None


def parse_timestamp(value):
    """
    Parse an event timestamp

    Accepts ISO-8601 strings (a trailing 'Z' included), datetime objects and
    epoch milliseconds. Naive datetimes are treated as UTC.

    Returns:
        datetime: Aware UTC datetime, or None when the value is unusable
    """
    if not is_present(value) or isinstance(value, bool):
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        else:
            text = str(value).strip()
            if text.endswith('Z') or text.endswith('z'):
                text = text[:-1] + '+00:00'
            parsed = datetime.fromisoformat(text)
    except (ValueError, TypeError, OverflowError, OSError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def minute_bucket(timestamp):
    if timestamp is None:
        return ''
    return timestamp.strftime('%Y-%m-%dT%H:%M')


def make_activity(kind, text, at):
    """Build one candidate Activity, or None if it has neither text nor a date"""
    timestamp = parse_timestamp(at)
    if timestamp is None and not is_present(text):
        return None

    code = str(kind).strip().lower() if is_present(kind) else ''
    if is_present(text):
        text = str(text)
    else:
        text = f"Order {code}" if code else "Order update"

    return Activity(
        code=code,
        text=text,
        at=at,
        icon=ICON_BY_CODE.get(code, ICON_BY_CODE['default']),
        dedupe_key=f"{code}|{text}|{minute_bucket(timestamp)}",
        timestamp=timestamp,
    )


def collect_candidates(order):
    """One slot per timeline or legacy entry; unusable entries come back as None"""
    candidates = []

    timeline = order.get('statusTimeline')
    if isinstance(timeline, list):
        for entry in timeline:
            if not isinstance(entry, dict):
                entry = {}
            candidates.append(make_activity(entry.get('code'), entry.get('note'), entry.get('at')))

    for name in LEGACY_COLLECTIONS:
        entries = order.get(name)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            candidates.append(make_activity(
                first_present(entry, FIELD_ALIASES['code']),
                first_present(entry, FIELD_ALIASES['text']),
                first_present(entry, FIELD_ALIASES['at']),
            ))

    return candidates


def bootstrap_candidates(order):
    """Minimal events synthesized from order timestamps"""
    status = canonical_status(order.get('status'))
    updated_at = order.get('updatedAt')

    delivered_at = order.get('deliveredAt')
    if not is_present(delivered_at) and status == 'completed':
        delivered_at = updated_at

    cancelled_at = order.get('cancelledAt')
    if not is_present(cancelled_at) and status == 'cancelled':
        cancelled_at = updated_at

    sources = (
        ('created', order.get('createdAt')),
        ('delivered', delivered_at),
        ('cancelled', cancelled_at),
    )
    return [
        make_activity(code, BOOTSTRAP_TEXT[code], at)
        for code, at in sources
        if is_present(at)
    ]


def build_activities(order):
    """
    Build the activity feed for one order snapshot

    Args:
        order: Order snapshot dict (camelCase keys); anything else yields []

    Returns:
        list[Activity]: Newest first, one entry per code|text|minute key
    """
    if not isinstance(order, dict):
        return []

    candidates = collect_candidates(order)
    # Bootstrap only when the order carries no entries at all, usable or not
    if not candidates:
        candidates = bootstrap_candidates(order)
    candidates = [a for a in candidates if a is not None]

    # Untimestamped entries sort as the epoch, after every dated entry
    ordered = sorted(
        candidates,
        key=lambda a: (a.timestamp is not None, a.timestamp or EPOCH),
        reverse=True,
    )

    activities = []
    seen = set()
    for activity in ordered:
        if activity.dedupe_key in seen:
            continue
        seen.add(activity.dedupe_key)
        activities.append(activity)
    return activities
