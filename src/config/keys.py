import os

SECRET_KEY = os.environ.get("SECRET_KEY", "development")

SENTRY_DSN = os.environ.get("SENTRY_DSN", "")

DB_NAME = os.environ.get("DB_NAME", "")
DB_USER = os.environ.get("DB_USER", "")
DB_PASS = os.environ.get("DB_PASS", "")
DB_HOST = os.environ.get("DB_HOST", "")
DB_PORT = os.environ.get("DB_PORT", "5432")

REDIS_HOST = os.environ.get("REDIS_HOST", "")
REDIS_PORT = os.environ.get("REDIS_PORT", "6379")

WEB3_PROVIDER_URL = os.environ.get("WEB3_PROVIDER_URL", "")
WEB3_CHAIN_ID = os.environ.get("WEB3_CHAIN_ID", "1001")
WEB3_PRIVATE_KEY = os.environ.get("WEB3_PRIVATE_KEY", "")
WEB3_PRIZE_POOL_ADDRESS = os.environ.get("WEB3_PRIZE_POOL_ADDRESS", "")
WEB3_HACKATHON_REGISTRY_ADDRESS = os.environ.get(
    "WEB3_HACKATHON_REGISTRY_ADDRESS", ""
)
