"""Domain errors and the JSON error handlers that expose them."""
import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ExpenseTrackerError(Exception):
    """Base class for errors returned to API callers as {message, code}."""
    status_code = 500
    code = "server_error"

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self):
        body = {"message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ExpenseTrackerError):
    status_code = 400
    code = "validation_failed"


class AuthenticationError(ExpenseTrackerError):
    status_code = 401
    code = "auth_required"


class NotFoundError(ExpenseTrackerError):
    status_code = 404
    code = "not_found"


class ConflictError(ExpenseTrackerError):
    status_code = 409
    code = "conflict"


def register_error_handlers(app, db):
    @app.errorhandler(ExpenseTrackerError)
    def handle_domain_error(error):
        if error.status_code >= 500:
            logger.error("Unhandled domain error: %s", error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        logger.exception("Database error")
        return jsonify({"message": "Database error occurred", "code": "database_error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or "error").lower().replace(" ", "_")
        return jsonify({"message": error.description, "code": code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unexpected error")
        return jsonify({"message": "Internal server error", "code": "server_error"}), 500
