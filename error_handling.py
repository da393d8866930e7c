"""
Standardized error handling for the application

Provides:
- Consistent error response format
- Error handler decorators
- Flask error handlers for common HTTP errors
- Provider and record store error taxonomy
"""
import logging
import traceback
from functools import wraps

from flask import Response, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# Error Response Format
# ============================================================================


def error_response(message, status_code=400, details=None):
    """
    Create a standardized error response

    Args:
        message: User-friendly error message
        status_code: HTTP status code
        details: Optional additional details (dict)

    Returns:
        tuple: (response, status_code)
    """
    response = {"success": False, "error": message}

    if details:
        response["details"] = details

    return jsonify(response), status_code


def text_error_response(message, status_code=400):
    """Create a plain text error response"""
    return Response(message, status=status_code)


# ============================================================================
# Specific Error Classes (for raising)
# ============================================================================


class ResourceNotFoundError(Exception):
    """Raise when a requested resource doesn't exist (404)"""

    pass


class ValidationError(ValueError):
    """Raise when input validation fails (400)"""

    def __init__(self, message="", details=None):
        super().__init__(message)
        self.details = details


class ServiceUnavailableError(Exception):
    """Raise when service/dependency is unavailable (503)"""

    pass


class ProviderError(Exception):
    """Upstream provider call failed"""

    pass


class CredentialsError(ProviderError):
    """Provider rejected the credentials or returned a malformed account payload"""

    pass


class UnreachableError(ProviderError):
    """Provider host could not be resolved or connected to"""

    pass


class StoreError(Exception):
    """Record store operation failed"""

    pass


class DuplicateError(StoreError):
    """A record with the same unique key already exists"""

    pass


class CancelledError(StoreError):
    """The store abandoned the write (lock timeout, interrupted connection)"""

    pass


class RecordValidationError(StoreError, ValidationError):
    """Record payload failed validation"""

    pass


class RecordNotFoundError(StoreError, ResourceNotFoundError):
    """No record with the requested id"""

    pass


# ============================================================================
# Error Handler Decorator
# ============================================================================

# Checked in order; first match wins (subclasses before their bases)
_ERROR_STATUS = (
    (CredentialsError, 401, "Provider rejected the credentials"),
    (UnreachableError, 502, "Provider is unreachable"),
    (ProviderError, 502, "Provider request failed"),
    (DuplicateError, 409, "Record already exists"),
    (CancelledError, 503, "Store is busy, try again"),
    (ResourceNotFoundError, 404, "Resource not found"),
    (ValidationError, 400, "Validation error"),
    (ServiceUnavailableError, 503, "Service temporarily unavailable"),
    (ValueError, 400, None),
)


def handle_errors(return_json=True, default_message="An error occurred", log_errors=True, include_traceback_in_dev=False):
    """
    Decorator to handle exceptions in route handlers

    Usage:
        @bp.route('/api/resource')
        @handle_errors()
        def my_route():
            ...

    Args:
        return_json: If True, returns JSON error; if False, returns plain text
        default_message: Fallback message if exception has no message
        log_errors: If True, logs errors to logger
        include_traceback_in_dev: If True and app.debug=True, includes traceback
    """

    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HTTPException:
                # Let Flask handle HTTP exceptions (abort, get_or_404, etc.)
                raise
            except Exception as exc:
                for error_class, status_code, fallback in _ERROR_STATUS:
                    if isinstance(exc, error_class):
                        if log_errors:
                            logger.warning(f"{type(exc).__name__} in {f.__name__}: {exc}")
                        message = str(exc) if str(exc) else (fallback or default_message)
                        if return_json:
                            return error_response(message, status_code, getattr(exc, "details", None))
                        return text_error_response(message, status_code)

                # Unexpected errors (500)
                if log_errors:
                    logger.error(f"Unexpected error in {f.__name__}", exc_info=True)

                from flask import current_app

                if current_app.config.get("DEBUG") and include_traceback_in_dev:
                    details = {"exception_type": type(exc).__name__, "traceback": traceback.format_exc()}
                    if return_json:
                        return error_response(str(exc), 500, details)
                    return text_error_response(f"{str(exc)}\n\n{traceback.format_exc()}", 500)

                # Never expose internal error details in production
                message = default_message if default_message else "An internal error occurred"
                if return_json:
                    return error_response(message, 500)
                return text_error_response(message, 500)

        return wrapper

    return decorator


# ============================================================================
# Flask Error Handlers (register these in app.py)
# ============================================================================


def register_error_handlers(app):
    """Register global error handlers for the Flask app"""

    @app.errorhandler(404)
    def not_found(error):
        return error_response("Resource not found", 404)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response("Bad request", 400)

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)

        if app.config.get("DEBUG"):
            return error_response(str(error), 500)
        else:
            return error_response("An internal error occurred", 500)

    @app.errorhandler(503)
    def service_unavailable(error):
        return error_response("Service temporarily unavailable", 503)
