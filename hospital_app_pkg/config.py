# hospital_app_pkg/config.py
import os

# Environment variables are loaded from .env by run.py / the app factory.

PLACEHOLDER_SECRET_KEY = 'you_REALLY_should_set_a_secret_key_in_env'
PLACEHOLDER_JWT_SECRET_KEY = 'you_REALLY_should_set_a_JWT_secret_key_in_env'


class Config:
    """Base configuration settings."""
    # Application Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or PLACEHOLDER_SECRET_KEY
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or PLACEHOLDER_JWT_SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRATION_MINUTES = int(os.environ.get('JWT_EXPIRATION_MINUTES', 7 * 24 * 60))

    # Database
    # Default to SQLite if DATABASE_URL is not set in the environment
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///hospital_default.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Patient queue
    DEFAULT_QUEUE_PRIORITY = int(os.environ.get('DEFAULT_QUEUE_PRIORITY', 3))

    # List endpoints (limit/offset paging)
    DEFAULT_LIST_LIMIT = 50
    MAX_LIST_LIMIT = 200

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development-specific configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or os.environ.get('DATABASE_URL') or 'sqlite:///hospital_dev.db'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """Testing-specific configuration."""
    TESTING = True
    DEBUG = True
    # In-memory SQLite; the partial unique index on the queue works there too.
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite://'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length-for-hs256'
    JWT_EXPIRATION_MINUTES = 5


class ProductionConfig(Config):
    """Production-specific configuration."""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///prod_fallback.db'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'WARNING')


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name=None):
    """Return the config class for `config_name`, falling back to FLASK_ENV."""
    env = (config_name or os.environ.get('FLASK_ENV', 'development')).lower()
    return CONFIGS.get(env, DevelopmentConfig)


def check_production_secrets(config):
    """Refuse to run production with the placeholder secrets."""
    if config.get('SECRET_KEY') == PLACEHOLDER_SECRET_KEY:
        raise ValueError("SECRET_KEY not set via environment variable for production")
    if config.get('JWT_SECRET_KEY') == PLACEHOLDER_JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY not set via environment variable for production")
