"""Configuration management using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration."""

    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./orders.db"

    # Stripe Configuration
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com"
    stripe_currency: str = "usd"
    gateway_timeout: float = 10.0
    webhook_tolerance_seconds: int = 300

    # Admin Configuration
    admin_api_key: Optional[str] = None

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    environment: str = "development"

    # GlitchTip Error Monitoring
    glitchtip_dsn: Optional[str] = None

    # Failed webhook reconciliations are appended here
    dead_letter_dir: str = "logs"

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False
        extra = "ignore"
