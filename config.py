import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Firebase configuration
    FIREBASE_CREDENTIALS_PATH = os.getenv(
        "FIREBASE_CREDENTIALS_PATH",
        "firebase-credentials.json"
    )

    # API configuration
    API_TITLE = "GreenMart Rewards & Pricing API"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = """
    GreenMart Rewards & Pricing API

    Features:
    - Voucher catalog with eligibility filtering
    - Lucky wheel reward spins (one per day)
    - Owned voucher tracking per user
    - Distance-based shipping fees
    - Voucher discounts and order totals
    """

    # CORS settings (adjust for your frontend)
    CORS_ORIGINS = [
        "http://localhost:3000",  # React default
        "http://localhost:5173",  # Vite default
    ]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Store location (District 5, Ho Chi Minh City)
    STORE_LATITUDE = float(os.getenv("STORE_LATITUDE", "10.754027"))
    STORE_LONGITUDE = float(os.getenv("STORE_LONGITUDE", "106.663874"))

    # Shipping fee tiers: (max distance in km, fee in VND)
    SHIPPING_FEE_TIERS = [
        (3.0, 15000),
        (7.0, 25000),
    ]
    SHIPPING_FEE_FAR = 35000
    # Used when the delivery address is not in the ward table
    DEFAULT_SHIPPING_FEE = int(os.getenv("DEFAULT_SHIPPING_FEE", "15000"))

    # Lucky wheel settings
    SPIN_MAX_RETRIES = 10
    ENFORCE_DAILY_SPIN_LIMIT = _env_bool("ENFORCE_DAILY_SPIN_LIMIT", "true")
    SPIN_TIMEZONE = os.getenv("SPIN_TIMEZONE", "Asia/Ho_Chi_Minh")
    NO_WIN_LABEL = "Chúc bạn may mắn lần sau"

    # Redis cache for the voucher catalog (disabled when unset)
    REDIS_URL = os.getenv("REDIS_URL")
    VOUCHER_CACHE_TTL_SECONDS = int(os.getenv("VOUCHER_CACHE_TTL_SECONDS", "300"))

    # Background job settings
    ENABLE_BACKGROUND_JOBS = _env_bool("ENABLE_BACKGROUND_JOBS", "false")
    VOUCHER_EXPIRY_INTERVAL_MINUTES = 30


settings = Settings()
