"""
Global Flask error handling middleware.

Every failure leaves the API as the same JSON envelope:
{
    "status": "error",
    "success": false,
    "error": "ErrorClassName",
    "message": "Human readable message",
    "details": { ... optional context ... }
}
"""

import os
import traceback

from flask import jsonify
from werkzeug.exceptions import HTTPException

from middleware.errors import BaseAppError


def _error_response(err, message, code, details=None):
    response = jsonify({
        "status": "error",
        "success": False,
        "error": err.__class__.__name__,
        "message": message,
        "details": details or {},
    })
    response.status_code = code
    return response


def register_error_handlers(app):
    """Attach all JSON error handlers to a Flask app instance."""

    @app.errorhandler(BaseAppError)
    def handle_app_error(err):
        log = app.logger.error if err.code >= 500 else app.logger.info
        log("%s: %s %s", err.__class__.__name__, err.message, err.details or "")
        return _error_response(err, err.message, err.code, err.details)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        # 404 / 405 / 413 raised by Flask itself
        return _error_response(err, err.description, err.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err):
        app.logger.exception("Unhandled error: %s", err)
        details = {}
        if app.debug or os.getenv("FLASK_DEBUG") == "1":
            details["traceback"] = traceback.format_exc()
        return _error_response(err, str(err) or "Unexpected internal error", 500, details)
