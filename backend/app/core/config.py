from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import computed_field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "Storefront Service"
    API_V1_STR: str = "/api/v1"

    POSTGRES_SERVER: str
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # Webhook dedupe marker TTL (seconds)
    PROCESSED_EVENT_TTL: int = 604800  # 7 days

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT_SECONDS: float = 15.0

    # Checkout
    FRONTEND_URL: str = "http://localhost:3000"
    CURRENCY: str = "NGN"
    ORDER_NUMBER_PREFIX: str = "ORD"
    PAYMENT_REFERENCE_PREFIX: str = "PAY"

    # Bearer tokens are issued by the auth service; we only decode them
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Email
    EMAIL_TRANSPORT: str = "console"  # console or smtp
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 587
    EMAIL_USERNAME: str | None = None
    EMAIL_PASSWORD: str | None = None
    EMAIL_USE_TLS: bool = False  # implicit TLS (port 465)
    EMAIL_START_TLS: bool = True
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    EMAIL_FROM_ADDRESS: str = "no-reply@example.com"
    EMAIL_FROM_NAME: str = "Storefront"
    ADMIN_EMAIL: str = "admin@example.com"

    # Store pickup defaults, used when the pickup record is first created
    DEFAULT_STORE_ADDRESS: str = "Shop 15, Banex Plaza, Wuse 2, Abuja"
    DEFAULT_STORE_WORKING_HOURS: str = "Mon-Sat: 9:00 AM - 6:00 PM"
    DEFAULT_PICKUP_PREPARATION_TIME: str = "2-4 hours"
    DEFAULT_PICKUP_INSTRUCTIONS: str = (
        "Present order confirmation and valid ID for pickup"
    )

    # Shipping settings defaults
    DEFAULT_FREE_DELIVERY_THRESHOLD: float = 10000.0
    DEFAULT_COURIER_PARTNER: str = "GIG Logistics"
    DEFAULT_MAX_DELIVERY_DAYS: int = 7

    # Metrics Configuration
    ENABLE_METRICS: bool = True

    # Notification scheduler (seconds)
    ENABLE_NOTIFICATION_SCHEDULER: bool = True
    NOTIFICATION_SCHEDULER_INTERVAL: int = 60  # How often due jobs are checked
    NOTIFICATION_SCHEDULER_ERROR_BACKOFF: int = 5
    LOW_STOCK_CHECK_INTERVAL: int = 21600  # 6 hours
    LOW_STOCK_THRESHOLD: int = 5
    LOW_STOCK_ALERT_COOLDOWN: int = 86400
    ABANDONED_CART_CHECK_INTERVAL: int = 86400
    ABANDONED_CART_MIN_AGE: int = 86400  # 24 hours
    ABANDONED_CART_MAX_AGE: int = 259200  # 72 hours
    DAILY_SUMMARY_INTERVAL: int = 86400
    WEEKLY_SUMMARY_INTERVAL: int = 604800

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_FORMAT: str = "json"  # json or console (console for dev, json for prod)
    ENVIRONMENT: str = "development"  # development, staging, production
    SERVICE_NAME: str = "storefront-service"
    SERVICE_VERSION: str = "v1.0.0"  # Deployment version (override with git SHA in prod)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @computed_field
    @property
    def REDIS_URL(self) -> str:
        """Construct Redis connection URL"""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()  # type: ignore
