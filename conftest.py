import os

# Load .env.test for local overrides before any settings are read
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

# Safe defaults so importing the app never needs real credentials.
# Individual tests build their own Settings pointing at a temp database.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-tokens.db")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PUBLIC_BASE_URL", "https://app.influencerhub.test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the env vars above
get_settings.cache_clear()
