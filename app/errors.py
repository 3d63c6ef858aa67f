"""
Service errors and their JSON rendering.

Services raise ``ServiceError`` subclasses; the handlers registered here turn
them (and any unexpected exception) into the ``{ok: false, ...}`` envelope.
"""

import logging

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

HTTP_ERROR_NAMES = {
    400: 'BAD_REQUEST',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'METHOD_NOT_ALLOWED',
    409: 'CONFLICT',
    413: 'PAYLOAD_TOO_LARGE',
    500: 'SERVER_ERROR',
    502: 'UPSTREAM_ERROR',
}


class ServiceError(Exception):
    """Base error carrying an HTTP status and a machine readable code."""

    status = 500

    def __init__(self, code, message=None, status=None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        if status is not None:
            self.status = status

    def to_dict(self):
        return {
            'ok': False,
            'error': HTTP_ERROR_NAMES.get(self.status, 'ERROR'),
            'code': self.code,
            'message': self.message,
        }


class BadRequest(ServiceError):
    status = 400


class Unauthorized(ServiceError):
    status = 401


class Forbidden(ServiceError):
    status = 403


class NotFound(ServiceError):
    status = 404


class Conflict(ServiceError):
    status = 409


class UpstreamError(ServiceError):
    status = 502


def error_response(status, code, message):
    return jsonify({
        'ok': False,
        'error': HTTP_ERROR_NAMES.get(status, 'ERROR'),
        'code': code,
        'message': message,
    }), status


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        if e.status >= 500:
            current_app.logger.error(f"{request.method} {request.path} failed: {e.code} {e.message}")
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({
            'ok': False,
            'error': 'Not Found',
            'path': request.path,
            'method': request.method,
        }), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        name = HTTP_ERROR_NAMES.get(e.code or 500, 'ERROR')
        return error_response(e.code or 500, name, e.description or name)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        current_app.logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        if current_app.config.get('APP_ENV') == 'development':
            message = str(e) or 'Internal Server Error'
        else:
            message = 'Internal Server Error'
        return error_response(500, 'SERVER_ERROR', message)
