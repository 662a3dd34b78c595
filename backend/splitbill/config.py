"""Settings read from the environment."""
import os
from decimal import Decimal

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./splitbill.db")

SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

_origins_env = os.getenv("ALLOWED_ORIGINS", "")
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()] if _origins_env else ["*"]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Balances and transfers at or below this are treated as settled.
SETTLEMENT_EPSILON = Decimal(os.getenv("SETTLEMENT_EPSILON", "0.01"))

# Digits of the currency minor unit, used only when presenting amounts.
CURRENCY_PLACES = int(os.getenv("CURRENCY_PLACES", "2"))
