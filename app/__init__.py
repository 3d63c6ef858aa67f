"""
Flask application factory for the Tastelog API.

Kuzu is the only data store. Sessions live in Flask-Session (in-process
cachelib cache, or Redis when SESSION_TYPE=redis).
"""

import os
import time
import logging

from cachelib import SimpleCache
from flask import Flask, g, request, jsonify, send_from_directory
from flask_cors import CORS
from flask_login import LoginManager
from flask_session import Session

from config import Config

logger = logging.getLogger(__name__)

login_manager = LoginManager()
sess = Session()

LOCAL_ORIGIN_PATTERN = r'^http://(localhost|127\.0\.0\.1)(:\d+)?$'


@login_manager.user_loader
def load_user(user_id):
    """Load user from Kuzu via the user service."""
    from .services import user_service
    return user_service.get_user_by_id(user_id)


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 for every protected endpoint."""
    return jsonify({
        'ok': False,
        'error': 'UNAUTHORIZED',
        'code': 'UNAUTHORIZED',
        'message': 'Login required',
    }), 401


def _configure_logging(app):
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    logging.getLogger().setLevel(log_level)
    app.logger.setLevel(log_level)
    # Suppress per-request connection noise from requests
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def _configure_sessions(app):
    backend = app.config.get('SESSION_BACKEND', 'memory')
    if backend == 'redis':
        import redis
        app.config['SESSION_TYPE'] = 'redis'
        app.config['SESSION_REDIS'] = redis.Redis(
            host=app.config['SESSION_REDIS_HOST'],
            port=app.config['SESSION_REDIS_PORT'],
            password=app.config['SESSION_REDIS_PASSWORD'],
            db=app.config['SESSION_REDIS_DB'],
        )
        app.logger.info(f"Sessions stored in Redis at {app.config['SESSION_REDIS_HOST']}:{app.config['SESSION_REDIS_PORT']}")
    else:
        app.config['SESSION_TYPE'] = 'cachelib'
        app.config['SESSION_CACHELIB'] = SimpleCache(default_timeout=int(app.config['PERMANENT_SESSION_LIFETIME']))
    sess.init_app(app)


def cors_origins(app):
    origins = [o.strip() for o in str(app.config.get('CORS_ORIGIN', '')).split(',') if o.strip()]
    if any('localhost' in o or '127.0.0.1' in o for o in origins):
        origins.append(LOCAL_ORIGIN_PATTERN)
    return origins


def frontend_url(app):
    """First configured CORS origin; OAuth redirects land there."""
    origins = [o.strip() for o in str(app.config.get('CORS_ORIGIN', '')).split(',') if o.strip()]
    return origins[0] if origins else ''


def create_app(config_class=Config):
    app = Flask(__name__, static_folder=None, static_url_path=None)
    app.config.from_object(config_class)

    _configure_logging(app)

    # Explicitly set the secret key for Flask-Session compatibility
    app.secret_key = app.config['SECRET_KEY']
    if not app.secret_key:
        raise RuntimeError("SECRET_KEY must be set in environment or config")

    # Point the process-wide Kuzu manager at this app's database
    from .utils.safe_kuzu_manager import reset_safe_kuzu_manager, DATABASE_FILENAME
    from .services import reset_all_services
    reset_safe_kuzu_manager(os.path.join(app.config['KUZU_DB_PATH'], DATABASE_FILENAME))
    reset_all_services()

    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize extensions
    _configure_sessions(app)
    login_manager.init_app(app)
    CORS(app, origins=cors_origins(app), supports_credentials=True)

    from .errors import register_error_handlers
    register_error_handlers(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.time()

    @app.after_request
    def _log_request(response):
        started = g.pop('request_started', None)
        if started is not None:
            elapsed_ms = (time.time() - started) * 1000
            app.logger.debug(f"{request.method} {request.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    @app.route('/')
    def index():
        return jsonify({'ok': True, 'message': 'Tastelog API is running'})

    @app.route('/api/health')
    def health():
        return jsonify({'ok': True})

    @app.route('/uploads/<path:filename>')
    def serve_uploads(filename):
        """Serve uploaded files from the upload folder."""
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    # Register API blueprints
    from .api import register_blueprints
    register_blueprints(app)

    if app.config.get('SEED_DEMO_USER'):
        from .services import user_service
        user = user_service.ensure_demo_user()
        app.logger.info(f"Demo user available: {user.email}")

    app.logger.info(f"Tastelog app created (env={app.config.get('APP_ENV')})")
    return app
