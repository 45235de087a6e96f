"""Configuration module for the Livenzo rent service."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # CSRF (clients send X-CSRFToken)
    WTF_CSRF_ENABLED = os.getenv('WTF_CSRF_ENABLED', 'true').lower() == 'true'

    # Database - Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'livenzo')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'livenzo')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'livenzo')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Email configuration (notifications)
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@livenzo.app'
    )
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'
    MAIL_ASYNC = os.getenv('MAIL_ASYNC', 'true').lower() == 'true'

    # Object Storage Configuration (meter photos, payment screenshots)
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_BUCKET = os.getenv('S3_BUCKET', 'user-uploads')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')

    # Upload constraints
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 5 * 1024 * 1024))  # 5MB
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/webp',
        'image/heic'
    }

    # Key-value store (Redis) for per-user flags and payment flows
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    KV_BACKEND = os.getenv('KV_BACKEND', 'redis')  # 'redis' or 'memory'
    KV_ENABLED = os.getenv('KV_ENABLED', 'true').lower() == 'true'
    KV_KEY_PREFIX = os.getenv('KV_KEY_PREFIX', 'livenzo')
    KV_DEFAULT_TTL = int(os.getenv('KV_DEFAULT_TTL', str(30 * 24 * 3600)))  # seconds
    PAYMENT_FLOW_TTL = int(os.getenv('PAYMENT_FLOW_TTL', '3600'))

    # Payments
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'INR')
    RAZORPAY_KEY_ID = os.getenv('RAZORPAY_KEY_ID')
    RAZORPAY_KEY_SECRET = os.getenv('RAZORPAY_KEY_SECRET')
    RAZORPAY_WEBHOOK_SECRET = os.getenv('RAZORPAY_WEBHOOK_SECRET')
    UPI_PAYEE_ID = os.getenv('UPI_PAYEE_ID', '7488698970@ybl')
    UPI_PAYEE_NAME = os.getenv('UPI_PAYEE_NAME', 'Livenzo')

    # Rent management gestures
    SWIPE_HINT_THRESHOLD = float(os.getenv('SWIPE_HINT_THRESHOLD', '50'))
    SWIPE_TRIGGER_OFFSET = float(os.getenv('SWIPE_TRIGGER_OFFSET', '100'))
    SWIPE_TRIGGER_VELOCITY = float(os.getenv('SWIPE_TRIGGER_VELOCITY', '500'))
    DOUBLE_TAP_WINDOW_MS = int(os.getenv('DOUBLE_TAP_WINDOW_MS', '300'))
    PAYMENT_HISTORY_MONTHS = int(os.getenv('PAYMENT_HISTORY_MONTHS', '12'))


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    KV_ENABLED = False
    KV_BACKEND = 'memory'
    MAIL_SUPPRESS_SEND = True
    MAIL_ASYNC = False
    RAZORPAY_KEY_ID = 'rzp_test_key'
    RAZORPAY_KEY_SECRET = 'rzp_test_secret'
    RAZORPAY_WEBHOOK_SECRET = 'rzp_webhook_secret'
