"""
Order Progress Resolution
Maps the (stage, status) pair of an order to a position on the tracking stepper
"""

# Display steps for the tracking stepper, in order
TRACKING_STEPS = [
    {'key': 'placed', 'label': 'Order Placed', 'icon': 'task-alt'},
    {'key': 'packaging', 'label': 'Packaging', 'icon': 'inventory'},
    {'key': 'road', 'label': 'On The Road', 'icon': 'local-shipping'},
    {'key': 'delivered', 'label': 'Delivered', 'icon': 'handshake'},
]

ORDER_STATUSES = ('pending', 'in_progress', 'completed', 'cancelled')
ORDER_STAGES = ('created', 'verified', 'packaging', 'road', 'shipped', 'lastmile', 'delivered', 'completed')

TERMINAL_STAGES = {'delivered', 'completed', 'lastmile'}
ROAD_STAGES = {'road', 'ontheroad', 'shipped'}
EARLY_STAGES = {'packaging', 'packing', 'created', 'verified'}


def canonical_status(status):
    """Lowercase a status; 'In Progress' and 'in-progress' become 'in_progress'"""
    if status is None:
        return ''
    value = str(status).strip().lower()
    return '_'.join(value.replace('-', ' ').split())


def canonical_stage(stage):
    """Lowercase a stage; unknown values pass through untouched"""
    if stage is None:
        return ''
    return str(stage).strip().lower()


def resolve_progress(stage, status, steps=len(TRACKING_STEPS)):
    """
    Resolve the progress index for an order

    Status is checked first so a cancelled order never looks like it is moving,
    and a completed one is always terminal. The result is clamped because the
    step count is supplied by the caller.

    Args:
        stage: Fulfilment stage (any string, None allowed)
        status: Business status (any string, None allowed)
        steps: Number of display steps

    Returns:
        int: Index in [0, steps - 1]
    """
    last = max(int(steps) - 1, 0)
    st = canonical_status(status)
    s = canonical_stage(stage)

    if st == 'cancelled':
        index = 0
    elif st == 'completed':
        index = last
    elif s in TERMINAL_STAGES:
        index = last
    elif s in ROAD_STAGES or st == 'in_progress':
        index = last - 1
    elif s in EARLY_STAGES or st == 'pending':
        index = 1
    else:
        index = 0

    return min(max(index, 0), last)


def progress_percent(index, steps=len(TRACKING_STEPS)):
    """Width of the stepper bar for a progress index"""
    if steps <= 1:
        return 0.0
    return round(index / (steps - 1) * 100, 2)
