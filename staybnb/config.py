from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str

    # Secret used to sign and verify access tokens
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12

    # --- Pricing ---
    PLATFORM_COMMISSION_PERCENT: int = 12
    PAYMENT_CURRENCY: str = "INR"

    # --- Payment gateway ---
    # With an empty key pair orders are only emulated when PAYMENT_EMULATION_ENABLED is set.
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_GATEWAY_TIMEOUT_SECONDS: float = 10.0
    PAYMENT_EMULATION_ENABLED: bool = False

    # --- Rate limiting ---
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = True

    # Set to 0 to disable the stay completion scheduler.
    STAY_COMPLETION_INTERVAL_SECONDS: int = 3600

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
