"""
Error Handling Utilities
Provides centralized error handling and logging for production safety
"""
import os
from flask import jsonify, request, has_request_context
from logger_config import log_error_with_context


UNAUTHORIZED_STATUSES = (401, 403)

# User-facing messages; transport details never reach the tracking view
LOAD_FAILED_MESSAGE = "Unable to load this order."
TRACK_FAILED_MESSAGE = "Unable to track this order."


class FetchError(Exception):
    """
    Failure returned by the order data layer

    Attributes:
        status: HTTP status code, or None for transport failures (timeout, DNS, ...)
        message: Server-provided message, kept for logs only
    """

    def __init__(self, status=None, message=None):
        self.status = status
        self.message = message or "Request failed"
        super().__init__(f"{status}: {self.message}" if status else self.message)

    @property
    def is_unauthorized(self):
        return self.status in UNAUTHORIZED_STATUSES

    @property
    def is_not_found(self):
        return self.status == 404


def user_safe_message(error, default_message=LOAD_FAILED_MESSAGE):
    """
    Short, non-technical text for a failed fetch

    Args:
        error: FetchError, any other exception, or None

    Returns:
        str: Message safe to render, or None when there is no error
    """
    if error is None:
        return None
    if isinstance(error, FetchError) and error.is_not_found:
        return "Order not found. Please check the details and try again."
    return default_message


def log_error(error, context=None):
    """
    Log error details server-side only

    Args:
        error: Exception object
        context: Optional context information (dict)
    """
    if context is None:
        context = {}

    if has_request_context():
        context['endpoint'] = request.path
        context['method'] = request.method
        context['remote_addr'] = request.remote_addr

    log_error_with_context(error, context)


def get_error_message(error, default_message="An error occurred"):
    """
    Get appropriate error message based on environment

    Args:
        error: Exception object
        default_message: Default message to return in production

    Returns:
        str: Error message (detailed in dev, generic in production)
    """
    if os.environ.get('ENV', 'production') == 'production':
        error_type = type(error).__name__

        # Map specific error types to user-friendly messages
        if 'IntegrityError' in error_type:
            return "This record already exists. Please check your input."
        elif 'OperationalError' in error_type:
            return "Database operation failed. Please try again later."
        elif 'ValidationError' in error_type:
            return "Invalid input provided. Please check your data."
        elif isinstance(error, FetchError):
            return user_safe_message(error, default_message)
        else:
            return default_message
    else:
        # In development, return detailed messages
        return f"{type(error).__name__}: {str(error)}"


def handle_exception(error, context=None, default_message="An error occurred"):
    """
    Handle exception and return appropriate response

    Args:
        error: Exception object
        context: Optional context information
        default_message: Default message for production

    Returns:
        tuple: (jsonify response, status_code)
    """
    log_error(error, context)

    error_message = get_error_message(error, default_message)

    error_type = type(error).__name__
    if isinstance(error, FetchError) and error.status:
        status_code = error.status
    elif 'ValidationError' in error_type or 'ValueError' in error_type:
        status_code = 400
    else:
        status_code = 500

    return jsonify({"error": error_message}), status_code
