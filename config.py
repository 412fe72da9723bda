import os
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _parse_excluded_seasons(raw):
    """Parse "EPL:2024/2025,EPL:2023/2024" into a list of (league, season) pairs"""
    pairs = []
    for item in (raw or "").split(","):
        item = item.strip()
        if not item or ":" not in item:
            continue
        sports_league, season = item.split(":", 1)
        pairs.append((sports_league.strip(), season.strip()))
    return pairs


class Config:
    # Pre-shared key for the admin trigger endpoints
    SCORING_API_KEY = os.environ.get("SCORING_API_KEY")

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")
        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "pickem_db"
            db_user = os.environ.get("DB_USER") or "pickem_user"
            db_password = os.environ.get("DB_PASSWORD") or "pickem_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Football Data API configuration
    FOOTBALLDATA_API_KEY = os.environ.get("FOOTBALLDATA_API_KEY")
    FOOTBALLDATA_API_BASE_URL = (
        os.environ.get("FOOTBALLDATA_API_BASE_URL")
        or "https://api.football-data.org/v4"
    )
    COMPETITION_CODE = os.environ.get("COMPETITION_CODE", "PL")
    SPORTS_LEAGUE = os.environ.get("SPORTS_LEAGUE", "EPL")
    PROVIDER_TIMEOUT = float(os.environ.get("PROVIDER_TIMEOUT") or 30)

    # Bulk query window, in days relative to today
    SYNC_LOOKBACK_DAYS = int(os.environ.get("SYNC_LOOKBACK_DAYS") or 2)
    SYNC_LOOKAHEAD_DAYS = int(os.environ.get("SYNC_LOOKAHEAD_DAYS") or 7)

    # Seconds to wait before each individual match lookup (provider rate limit)
    INDIVIDUAL_REQUEST_DELAY = float(
        os.environ.get("INDIVIDUAL_REQUEST_DELAY") or 6.0
    )

    # Seasons skipped by the overdue scan, e.g. "EPL:2024/2025"
    OVERDUE_EXCLUDED_SEASONS = _parse_excluded_seasons(
        os.environ.get("OVERDUE_EXCLUDED_SEASONS", "EPL:2024/2025")
    )

    # Reconciliation run lease
    RECONCILE_LEASE_SECONDS = int(os.environ.get("RECONCILE_LEASE_SECONDS") or 900)

    # Application settings
    TIMEZONE = os.environ.get("TIMEZONE", "UTC")  # Default to UTC if not specified

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "pickem:"

    # Rate limiting for the admin endpoints
    RATELIMIT_ENABLED = True
    ADMIN_RATE_LIMIT = os.environ.get("ADMIN_RATE_LIMIT", "10 per minute")

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"
    RECONCILE_INTERVAL_MINUTES = int(
        os.environ.get("RECONCILE_INTERVAL_MINUTES") or 15
    )

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        import redis

        try:
            redis_client = redis.Redis.from_url(self.CACHE_REDIS_URL)
            redis_client.ping()
        except redis.exceptions.ConnectionError:
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "🔶 Redis not available, falling back to SimpleCache for development.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    # In production, require explicit environment variables
    def __init__(self):
        super().__init__()  # Call parent __init__ to build database URI

        if not os.environ.get("SCORING_API_KEY"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: SCORING_API_KEY not set! "
                "The admin trigger endpoints will reject every request.",
                UserWarning,
            )
        if not os.environ.get("FOOTBALLDATA_API_KEY"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: FOOTBALLDATA_API_KEY not set! "
                "Game score reconciliation will fail.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCORING_API_KEY = "test-scoring-key"
    FOOTBALLDATA_API_KEY = "test-provider-key"
    INDIVIDUAL_REQUEST_DELAY = 0
    OVERDUE_EXCLUDED_SEASONS = [("EPL", "2024/2025")]
    CACHE_TYPE = "SimpleCache"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False

    def __init__(self):
        # In-memory database, nothing to build from the environment
        pass


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
