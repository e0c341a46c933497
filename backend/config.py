# backend/config.py
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./milkman.db"

    # Hosted checkout (Stripe)
    STRIPE_API_URL: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CURRENCY: str = "usd"

    FRONTEND_URL: str = "http://localhost:5173"

    # Checkout
    DELIVERY_FEE: Decimal = Decimal("2.99")
    MOCK_PAYMENT_DELAY_SECONDS: float = 1.0
    MOCK_PAYMENT_SHOULD_FAIL: bool = False

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)

settings = Settings()
