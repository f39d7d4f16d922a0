"""
Authentication and Authorization Utilities
Provides JWT token generation, verification, and decorators for route protection
"""
import jwt
from functools import wraps
from flask import request, jsonify, current_app
from datetime import datetime, timedelta

from tracking_pkg.models import db, Customer, STAFF_ROLES
from logger_config import app_logger


def generate_token(user_id, role, email=None):
    """
    Generate a JWT token for authenticated user

    Args:
        user_id: User ID
        role: User role (customer, admin, manager)
        email: Optional email

    Returns:
        str: JWT token
    """
    expiry_days = current_app.config.get('JWT_EXPIRY_DAYS', 7)
    payload = {
        'user_id': user_id,
        'role': role,
        'email': email,
        'exp': datetime.utcnow() + timedelta(days=expiry_days),
        'iat': datetime.utcnow()
    }

    secret_key = current_app.config.get('SECRET_KEY')
    if not secret_key:
        raise ValueError("SECRET_KEY not configured")

    return jwt.encode(payload, secret_key, algorithm='HS256')


def verify_token(token):
    """
    Verify and decode a JWT token

    Returns:
        dict: Decoded token payload or None if invalid
    """
    secret_key = current_app.config.get('SECRET_KEY')
    if not secret_key:
        app_logger.error("SECRET_KEY is missing from app config")
        return None

    try:
        return jwt.decode(token, secret_key, algorithms=['HS256'], leeway=10)
    except jwt.ExpiredSignatureError as e:
        app_logger.warning(f"JWT token expired: {e}")
        return None
    except jwt.InvalidTokenError as e:
        app_logger.warning(f"JWT token invalid: {type(e).__name__}: {e}")
        return None


def get_token_from_request():
    """
    Extract JWT token from request

    Priority:
    1. Authorization header (Bearer token)
    2. HttpOnly cookie (access_token)
    3. Query parameter (token), used by tracking links

    Returns:
        str: Token or None
    """
    auth_header = request.headers.get('Authorization')
    if auth_header and auth_header.startswith('Bearer '):
        token = auth_header.split(' ', 1)[1].strip()
        if token:
            return token

    token = request.cookies.get('access_token')
    if token:
        return token

    token = request.args.get('token')
    if token:
        return token

    return None


def verify_user_exists(user_id):
    try:
        return db.session.get(Customer, int(user_id)) is not None
    except (TypeError, ValueError):
        return False


def require_auth(f):
    """
    Decorator to require authentication for a route
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = get_token_from_request()
        if not token:
            app_logger.debug(f"Auth failed - No token found (Route: {request.path})")
            return jsonify({"error": "Authentication required", "code": "AUTH_REQUIRED"}), 401

        payload = verify_token(token)
        if not payload:
            return jsonify({"error": "Invalid or expired token", "code": "INVALID_TOKEN"}), 401

        user_id = payload.get('user_id')
        if not verify_user_exists(user_id):
            app_logger.warning(f"Auth failed - User not found in DB (Route: {request.path}, User ID: {user_id})")
            return jsonify({"error": "User no longer exists", "code": "USER_NOT_FOUND"}), 401

        request.current_user = payload
        request.user_id = user_id
        request.role = payload.get('role')

        return f(*args, **kwargs)

    return decorated_function


login_required = require_auth


def role_required(allowed_roles):
    """
    Decorator factory to require specific roles

    Usage:
        @role_required(['admin', 'manager'])
        def some_function():
            pass
    """
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            user_role = request.current_user.get('role')

            if user_role not in allowed_roles:
                app_logger.warning(
                    f"Insufficient permissions - Route: {request.path}, "
                    f"User role: {user_role}, Required: {allowed_roles}"
                )
                return jsonify({
                    "error": "Insufficient permissions",
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "required_roles": list(allowed_roles),
                    "user_role": user_role
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


staff_required = role_required(list(STAFF_ROLES))


def is_staff():
    return getattr(request, 'role', None) in STAFF_ROLES
