"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "PlayHub"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    app_url: str = "http://localhost:3000"

    # All establishments share one local time frame
    timezone: str = "America/Sao_Paulo"

    # Database
    database_url: str = "postgresql+asyncpg://playhub:playhub@db:5432/playhub"
    database_echo: bool = False

    # Redis (Celery broker for the email worker)
    redis_url: str = "redis://redis:6379/0"

    # Auth
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Email / SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 1025
    smtp_from: str = "noreply@playhub.app"

    # Reservation policy
    slot_step_minutes: int = 30
    customer_max_repeat_weeks: int = 3
    owner_max_repeat_weeks: int = 52
    rate_limit_window_minutes: int = 10
    rate_limit_max_requests: int = 30
    long_booking_minutes: int = 90
    lock_timeout_ms: int = 5000

    # Notifications
    email_enabled: bool = True
    email_booking_confirmation_enabled: bool = True
    email_booking_cancellation_enabled: bool = True

    # Online payments
    payments_enabled: bool = False
    payment_provider: str = "none"  # asaas, mercadopago, none

    model_config = {"env_prefix": "PH_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
