"""
Orders Routes Blueprint
Handles the signed-in order history, order tracking and the public
(order id + billing email) lookup
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import func
from datetime import datetime

from tracking_pkg import limiter
from tracking_pkg.models import db, Order
from tracking_pkg.auth import login_required, is_staff
from tracking_pkg.activity_logger import record_timeline_event
from tracking_pkg.schemas import order_schema, orders_schema
from tracking_pkg.validation import validate_request_data, TrackOrderSchema
from tracking_pkg.view import build_progress_snapshot
from tracking_pkg.error_handler import handle_exception
from logger_config import app_logger, tracking_logger, mask_email

# Create blueprint
bp = Blueprint('orders', __name__, url_prefix='/orders')


def safe_int(value, default, minimum, maximum):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, number))


def get_pagination():
    page = safe_int(request.args.get('page'), 1, 1, 10 ** 9)
    limit = safe_int(
        request.args.get('limit'),
        current_app.config.get('DEFAULT_PAGE_LIMIT', 20),
        1,
        current_app.config.get('MAX_PAGE_LIMIT', 100),
    )
    return page, limit


def find_order(order_ref):
    """Look an order up by numeric id or by its human-facing code"""
    order_ref = str(order_ref).strip()
    if order_ref.isdigit():
        order = db.session.get(Order, int(order_ref))
        if order:
            return order
    return Order.query.filter(func.upper(Order.code) == order_ref.upper()).first()


def tracking_payload(order):
    order_data = order_schema.dump(order)
    return {
        "order": order_data,
        "tracking": build_progress_snapshot(order_data),
        "pollSeconds": current_app.config.get('TRACKING_POLL_SECONDS', 10),
    }


def load_own_order(order_id):
    """
    Returns:
        tuple: (order, error_response); staff may read any order
    """
    order = db.session.get(Order, order_id)
    if not order:
        return None, (jsonify({"error": "Order not found"}), 404)
    if not is_staff() and not order.is_owned_by(request.user_id):
        app_logger.warning(f"User {request.user_id} denied access to order {order_id}")
        return None, (jsonify({"error": "Forbidden"}), 403)
    return order, None


@bp.route('/', methods=['GET'])
@login_required
def get_orders():
    """
    GET /api/orders/
    Orders of the signed-in customer, newest first
    """
    try:
        page, limit = get_pagination()
        query = Order.query.filter_by(customer_id=request.user_id)
        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return jsonify({
            "orders": orders_schema.dump(orders),
            "meta": {"total": total, "page": page, "limit": limit},
            "pollSeconds": current_app.config.get('ORDER_LIST_POLL_SECONDS', 15),
        }), 200

    except Exception as e:
        app_logger.exception(f"Get orders error: {e}")
        return jsonify({"error": "Failed to retrieve orders"}), 500


@bp.route('/<int:order_id>', methods=['GET'])
@login_required
def get_order(order_id):
    """
    GET /api/orders/<order_id>
    Get specific order details
    """
    try:
        order, error = load_own_order(order_id)
        if error:
            return error
        return order_schema.jsonify(order), 200

    except Exception as e:
        app_logger.exception(f"Get order error: {e}")
        return jsonify({"error": "Failed to retrieve order"}), 500


@bp.route('/<int:order_id>/tracking', methods=['GET'])
@login_required
def get_order_tracking(order_id):
    """
    GET /api/orders/<order_id>/tracking
    Order snapshot plus progress stepper and activity feed
    """
    try:
        order, error = load_own_order(order_id)
        if error:
            return error
        return jsonify(tracking_payload(order)), 200

    except Exception as e:
        app_logger.exception(f"Get order tracking error: {e}")
        return jsonify({"error": "Failed to retrieve tracking information"}), 500


@bp.route('/track', methods=['POST'])
@limiter.limit(lambda: current_app.config.get('TRACK_RATE_LIMIT', '10 per minute'))
def track_order():
    """
    POST /api/orders/track
    Public lookup by order id (or code) and billing email

    Request Body:
        {"orderId": "1001", "email": "buyer@example.com"}
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400

        validated, errors = validate_request_data(TrackOrderSchema, data)
        if errors:
            message = "Invalid order id" if 'orderId' in errors else "Valid email required"
            return jsonify({"error": message, "details": errors}), 400

        order_ref = validated['orderId']
        email = validated['email']

        order = find_order(order_ref)
        # Same answer for unknown orders and wrong emails
        if not order or (order.customer_email or '').strip().lower() != email:
            tracking_logger.info(f"Public lookup miss for order {order_ref} ({mask_email(email)})")
            return jsonify({"error": "Order not found"}), 404

        tracking_logger.info(f"Public lookup hit for order {order.id} ({mask_email(email)})")
        return jsonify(tracking_payload(order)), 200

    except Exception as e:
        return handle_exception(e, {"route": "track_order"}, "Failed to track order")


@bp.route('/<int:order_id>/cancel', methods=['POST'])
@login_required
def cancel_order(order_id):
    """
    POST /api/orders/<order_id>/cancel
    Customer cancels their own order
    """
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"error": "Order not found"}), 404
        if not order.is_owned_by(request.user_id):
            return jsonify({"error": "Forbidden"}), 403

        if order.status == 'cancelled':
            return order_schema.jsonify(order), 200
        if order.status == 'completed':
            return jsonify({"error": "Completed orders cannot be cancelled"}), 409

        now = datetime.utcnow()
        order.status = 'cancelled'
        order.cancelled_at = now
        record_timeline_event(order, 'cancelled', "Order has been cancelled by customer.",
                              'customer', request.user_id, at=now)
        db.session.commit()

        app_logger.info(f"Order {order_id} cancelled by customer {request.user_id}")
        return order_schema.jsonify(order), 200

    except Exception as e:
        db.session.rollback()
        app_logger.exception(f"Cancel order error: {e}")
        return jsonify({"error": "Failed to cancel order"}), 500


@bp.route('/<int:order_id>/confirm-delivery', methods=['POST'])
@bp.route('/<int:order_id>/confirm', methods=['POST'])
@login_required
def confirm_delivery(order_id):
    """
    POST /api/orders/<order_id>/confirm-delivery
    Customer confirms the order arrived (/confirm is accepted as an alias)
    """
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"error": "Order not found"}), 404
        if not order.is_owned_by(request.user_id):
            return jsonify({"error": "Forbidden"}), 403

        if order.status == 'cancelled':
            return jsonify({"error": "Cancelled orders cannot be confirmed"}), 409

        now = datetime.utcnow()
        order.stage = 'delivered'
        order.status = 'completed'
        order.delivered_at = now
        record_timeline_event(order, 'delivered', "Order marked delivered by customer.",
                              'customer', request.user_id, at=now)
        db.session.commit()

        app_logger.info(f"Order {order_id} delivery confirmed by customer {request.user_id}")
        return order_schema.jsonify(order), 200

    except Exception as e:
        db.session.rollback()
        app_logger.exception(f"Confirm delivery error: {e}")
        return jsonify({"error": "Failed to confirm delivery"}), 500
