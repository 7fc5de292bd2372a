from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Service ---
    PROJECT_NAME: str = "Pizzeria_Orders"
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    DATABASE_URL: str = "sqlite:///./pizzeria.db"
    DB_CONNECT_RETRIES: int = 10
    DB_CONNECT_WAIT_SECONDS: int = 3

    # --- Admin order list cache ---
    # Redis is optional: without it the cache lives in process memory.
    REDIS_URL: str | None = None
    ORDER_CACHE_TTL_SECONDS: int = 30

    # --- Transactional email API ---
    EMAIL_API_URL: str = "http://localhost:3002"
    EMAIL_API_TIMEOUT_SECONDS: float = 10.0

    # --- Twilio (admin WhatsApp alert on new orders) ---
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_FROM_NUMBER: str | None = None
    ADMIN_PHONE_NUMBER: str | None = None

    # --- Business defaults (used when the settings table has no value) ---
    RESTAURANT_TIMEZONE: str = "Europe/Berlin"
    DEFAULT_DELIVERY_FEE: str = "2.50"
    DEFAULT_FREE_DELIVERY_THRESHOLD: str = "20.00"
    DEFAULT_PICKUP_MINUTES: int = 15
    DEFAULT_DELIVERY_MINUTES: int = 40
    PAYPAL_ENABLED: bool = False
    CLAMP_DISCOUNT_AT_100: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
