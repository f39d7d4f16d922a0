"""
Authentication Routes Blueprint
Handles login and logout for the signed-in order views
"""
from flask import Blueprint, request, jsonify, current_app

from tracking_pkg import limiter
from tracking_pkg.models import Customer
from tracking_pkg.auth import generate_token, verify_token, get_token_from_request
from tracking_pkg.schemas import customer_schema
from tracking_pkg.validation import validate_request_data, LoginSchema
from logger_config import app_logger, log_auth_event

# Create blueprint
bp = Blueprint('auth', __name__, url_prefix='/auth')


@bp.route('/login', methods=['POST'])
@limiter.limit("20 per minute")
def login():
    """
    POST /api/auth/login
    Authenticate a customer or staff member and return a JWT

    Request Body:
        {"email": "...", "password": "..."}
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400

        validated, errors = validate_request_data(LoginSchema, data)
        if errors:
            return jsonify({"error": "Validation failed", "details": errors}), 400

        email = validated['email'].strip().lower()
        user = Customer.query.filter_by(email=email).first()
        if not user or not user.check_password(validated['password']):
            log_auth_event('login', False, email, ip_address=request.remote_addr, error="Invalid credentials")
            return jsonify({"error": "Invalid credentials", "message": "Email or password incorrect"}), 401

        token = generate_token(user_id=user.id, role=user.role, email=user.email)
        log_auth_event('login', True, email, user.id, user.role, request.remote_addr)

        response = jsonify({
            "message": "Login successful",
            "token": token,
            "user": customer_schema.dump(user),
        })
        response.set_cookie(
            "access_token",
            token,
            httponly=True,
            secure=current_app.config.get('ENV') == 'production',
            samesite='Lax',
            max_age=current_app.config.get('JWT_EXPIRY_DAYS', 7) * 24 * 3600,
        )
        return response, 200

    except Exception as e:
        app_logger.exception(f"Login error: {e}")
        return jsonify({"error": "Login failed"}), 500


@bp.route('/logout', methods=['POST'])
def logout():
    """
    POST /api/auth/logout
    Clear the access_token cookie; works with expired tokens too
    """
    token = get_token_from_request()
    payload = verify_token(token) if token else None
    if payload:
        log_auth_event('logout', True, payload.get('email'), payload.get('user_id'),
                       payload.get('role'), request.remote_addr)

    response = jsonify({"success": True, "message": "Logged out successfully"})
    response.delete_cookie("access_token", path="/")
    return response, 200
