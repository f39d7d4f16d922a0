"""
Admin Routes Blueprint
Staff-side order list, CSV export and the status / stage mutations that feed tracking
"""
import csv
from io import StringIO
from flask import Blueprint, Response, request, jsonify
from sqlalchemy import or_
from datetime import datetime

from tracking_pkg.models import db, Order
from tracking_pkg.auth import staff_required
from tracking_pkg.activity_logger import record_timeline_event
from tracking_pkg.schemas import order_schema, orders_schema
from tracking_pkg.validation import (
    validate_request_data,
    StatusUpdateSchema,
    StageUpdateSchema,
    OrderEventSchema,
    sanitize_text,
)
from tracking_pkg.progress import canonical_status, canonical_stage
from tracking_pkg.routes.orders_routes import get_pagination
from logger_config import app_logger

# Create blueprint
bp = Blueprint('admin', __name__, url_prefix='/admin')

STATUS_NOTE = "Status updated by admin"
STAGE_NOTE = "Stage updated by admin"

EXPORT_COLUMNS = [
    "OrderID", "Code", "CreatedAt", "UpdatedAt", "CustomerName", "CustomerEmail",
    "Status", "Stage", "ShippedAt", "DeliveredAt", "CancelledAt",
]


def parse_date(value):
    """Parse a from/to filter; invalid dates are ignored"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def build_filter(query, args):
    q = sanitize_text(args.get('q', '')).strip()
    if q:
        conditions = [Order.customer_email.ilike(f"%{q}%"), Order.code.ilike(f"%{q}%")]
        if q.isdigit():
            conditions.append(Order.id == int(q))
        query = query.filter(or_(*conditions))

    status = canonical_status(args.get('status'))
    if status:
        query = query.filter(Order.status == status)

    stage = canonical_stage(args.get('stage'))
    if stage:
        query = query.filter(Order.stage == stage)

    from_date = parse_date(args.get('from'))
    if from_date:
        query = query.filter(Order.created_at >= from_date)
    to_date = parse_date(args.get('to'))
    if to_date:
        query = query.filter(Order.created_at < to_date)

    return query


@bp.route('/orders/', methods=['GET'])
@staff_required
def list_orders():
    """
    GET /api/admin/orders/?q=&status=&stage=&from=&to=&page=&limit=
    All orders, newest first
    """
    try:
        page, limit = get_pagination()
        query = build_filter(Order.query, request.args)
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
        }), 200

    except Exception as e:
        app_logger.exception(f"Admin list orders error: {e}")
        return jsonify({"error": "Failed to retrieve orders"}), 500


def _iso(value):
    return value.isoformat() if value else ""


def build_export_csv(orders):
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for order in orders:
        name = " ".join(part for part in (order.customer_first_name, order.customer_last_name) if part)
        writer.writerow([
            order.id,
            order.code or "",
            _iso(order.created_at),
            _iso(order.updated_at),
            name,
            order.customer_email or "",
            order.status or "",
            order.stage or "",
            _iso(order.shipped_at),
            _iso(order.delivered_at),
            _iso(order.cancelled_at),
        ])

    filename = f"orders-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
    return buf.getvalue(), filename


@bp.route('/orders/export.csv', methods=['GET'])
@staff_required
def export_orders():
    """
    GET /api/admin/orders/export.csv?q=&status=&stage=&from=&to=
    Same filters as the list, no pagination
    """
    try:
        query = build_filter(Order.query, request.args)
        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        body, filename = build_export_csv(orders)

        app_logger.info(f"Order export: {len(orders)} rows by {request.role} #{request.user_id}")
        return Response(
            body,
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    except Exception as e:
        app_logger.exception(f"Order export error: {e}")
        return jsonify({"error": "Failed to export orders"}), 500


@bp.route('/orders/<int:order_id>/status', methods=['PUT'])
@staff_required
def update_order_status(order_id):
    """
    PUT /api/admin/orders/<order_id>/status
    Set the business status; unchanged values are a no-op
    """
    try:
        validated, errors = validate_request_data(StatusUpdateSchema, request.get_json(silent=True))
        if errors:
            return jsonify({"error": "Invalid status", "details": errors}), 400

        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"error": "Order not found"}), 404

        status = validated['status']
        if canonical_status(order.status) == status:
            return order_schema.jsonify(order), 200

        now = datetime.utcnow()
        old_status = order.status
        order.status = status
        if status == 'completed':
            order.delivered_at = now
        elif status == 'cancelled':
            order.cancelled_at = now

        record_timeline_event(order, status, STATUS_NOTE, request.role, request.user_id, at=now, dedupe=True)
        db.session.commit()

        app_logger.info(f"Order {order_id} status {old_status} -> {status} by {request.role} #{request.user_id}")
        return order_schema.jsonify(order), 200

    except Exception as e:
        db.session.rollback()
        app_logger.exception(f"Update order status error: {e}")
        return jsonify({"error": "Failed to update order status"}), 500


@bp.route('/orders/<int:order_id>/stage', methods=['PUT'])
@staff_required
def update_order_stage(order_id):
    """
    PUT /api/admin/orders/<order_id>/stage
    Move the order through fulfilment; 'delivered' also completes it
    """
    try:
        validated, errors = validate_request_data(StageUpdateSchema, request.get_json(silent=True))
        if errors:
            return jsonify({"error": "Invalid stage", "details": errors}), 400

        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"error": "Order not found"}), 404

        stage = validated['stage']
        if canonical_stage(order.stage) == stage:
            return order_schema.jsonify(order), 200

        now = datetime.utcnow()
        old_stage = order.stage
        order.stage = stage
        if stage == 'shipped':
            order.shipped_at = now
        elif stage == 'delivered':
            order.delivered_at = now
            order.status = 'completed'

        record_timeline_event(order, stage, STAGE_NOTE, request.role, request.user_id, at=now, dedupe=True)
        db.session.commit()

        app_logger.info(f"Order {order_id} stage {old_stage} -> {stage} by {request.role} #{request.user_id}")
        return order_schema.jsonify(order), 200

    except Exception as e:
        db.session.rollback()
        app_logger.exception(f"Update order stage error: {e}")
        return jsonify({"error": "Failed to update order stage"}), 500


@bp.route('/orders/<int:order_id>/events', methods=['POST'])
@staff_required
def add_order_event(order_id):
    """
    POST /api/admin/orders/<order_id>/events
    Append a free-form event to the order timeline

    Request Body:
        {"type": "note", "text": "Parcel handed to courier", "at": "2024-01-01T10:00:00Z"}
    """
    try:
        validated, errors = validate_request_data(OrderEventSchema, request.get_json(silent=True))
        if errors:
            return jsonify({"error": "Validation failed", "details": errors}), 400

        order = db.session.get(Order, order_id)
        if not order:
            return jsonify({"error": "Order not found"}), 404

        record_timeline_event(
            order,
            validated['type'],
            validated.get('text'),
            request.role,
            request.user_id,
            at=validated.get('at'),
        )
        db.session.commit()
        return order_schema.jsonify(order), 201

    except Exception as e:
        db.session.rollback()
        app_logger.exception(f"Add order event error: {e}")
        return jsonify({"error": "Failed to add order event"}), 500
