import os
import secrets
import platform
from dotenv import load_dotenv

# Load environment variables from .env file(s)
# 1) Project root .env
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default='false'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


def ensure_data_directory():
    """Ensure data directory and its uploads subdirectory exist (cross-platform)"""
    data_dir = os.environ.get('DATA_DIR') or os.path.join(basedir, 'data')
    os.makedirs(data_dir, exist_ok=True)

    uploads_dir = os.path.join(data_dir, 'uploads')
    os.makedirs(uploads_dir, exist_ok=True)

    # Only set Unix permissions on non-Windows systems
    if platform.system() != "Windows":
        try:
            os.chmod(data_dir, 0o755)
            os.chmod(uploads_dir, 0o755)
        except (OSError, PermissionError):
            # Ignore permission errors (common on mounted volumes)
            pass

    return data_dir


# Initialize data directory
data_dir = ensure_data_directory()

# 2) Overlay data/.env so settings saved next to the database persist via the mounted volume
data_env_path = os.path.join(data_dir, '.env')
if os.path.exists(data_env_path):
    load_dotenv(dotenv_path=data_env_path, override=True)


class Config:
    # Expose data directory path for other modules
    DATA_DIR = data_dir

    # 'development' shows raw error messages in 500 responses
    APP_ENV = os.environ.get('APP_ENV', 'production').lower()

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.environ.get('SESSION_SECRET')
    if not SECRET_KEY:
        if APP_ENV == 'development' or os.environ.get('FLASK_DEBUG'):
            SECRET_KEY = secrets.token_hex(32)
            print("⚠️  WARNING: Using temporary SECRET_KEY for development. Set SECRET_KEY in .env for production!")
        else:
            # Every gunicorn worker must sign sessions with the same key.
            raise ValueError("No SECRET_KEY set for Flask application. Please set it in your .env file.")

    # Session cookie
    SESSION_COOKIE_NAME = os.environ.get('SESSION_COOKIE_NAME', 'sid')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = APP_ENV == 'production' and _env_bool('SESSION_COOKIE_SECURE', 'true')
    # Cross-site SPA in production needs SameSite=None (only valid with Secure)
    SESSION_COOKIE_SAMESITE = 'None' if SESSION_COOKIE_SECURE else 'Lax'
    SESSION_COOKIE_DOMAIN = os.environ.get('COOKIE_DOMAIN') or None
    SESSION_PERMANENT = True
    PERMANENT_SESSION_LIFETIME = 86400 * 7  # 7 days

    # Flask-Session Configuration
    # 'memory' keeps sessions in-process, 'redis' shares them between workers
    SESSION_BACKEND = os.environ.get('SESSION_TYPE', 'memory').lower()
    SESSION_KEY_PREFIX = 'tastelog:'

    SESSION_REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
    SESSION_REDIS_PORT = int(os.environ.get('REDIS_PORT', 6379))
    SESSION_REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD')
    SESSION_REDIS_DB = int(os.environ.get('REDIS_SESSION_DB', 0))

    # Kuzu Database Configuration
    KUZU_DB_PATH = os.environ.get('KUZU_DB_PATH') or os.path.join(data_dir, 'kuzu')

    # File uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(data_dir, 'uploads')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB max file upload

    # CORS: comma separated list of allowed frontend origins
    CORS_ORIGIN = os.environ.get('CORS_ORIGIN', 'http://localhost:5173')

    # Kakao
    KAKAO_CLIENT_ID = os.environ.get('KAKAO_CLIENT_ID', '')
    KAKAO_CLIENT_SECRET = os.environ.get('KAKAO_CLIENT_SECRET', '')
    KAKAO_REDIRECT_URI = os.environ.get('KAKAO_REDIRECT_URI', 'http://localhost:3000/api/auth/kakao/callback')
    KAKAO_REST_API_KEY = os.environ.get('KAKAO_REST_API_KEY', '')
    KAKAO_MOBILITY_API_KEY = os.environ.get('KAKAO_MOBILITY_API_KEY') or KAKAO_REST_API_KEY
    KAKAO_HTTP_TIMEOUT = float(os.environ.get('KAKAO_HTTP_TIMEOUT', 10))

    # Location / recommendation tuning
    GUILD_NEARBY_RADIUS_M = float(os.environ.get('GUILD_NEARBY_RADIUS_M', 50))
    DEFAULT_RECOMMENDATION_RADIUS_M = int(os.environ.get('DEFAULT_RECOMMENDATION_RADIUS_M', 3000))

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Demo account (test@example.com / 1234)
    SEED_DEMO_USER = _env_bool('SEED_DEMO_USER', 'true' if APP_ENV == 'development' else 'false')


class TestConfig(Config):
    TESTING = True
    APP_ENV = 'development'
    SECRET_KEY = 'test-secret-key'
    SESSION_BACKEND = 'memory'
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    SEED_DEMO_USER = False
    KAKAO_CLIENT_ID = ''
    KAKAO_CLIENT_SECRET = ''
    KAKAO_REST_API_KEY = 'test-rest-key'
    KAKAO_MOBILITY_API_KEY = 'test-mobility-key'
    LOG_LEVEL = 'WARNING'
