from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / "CreatorMarketplace"
    api_prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]
    session_ttl_seconds: int = 60 * 60 * 24 * 7  # 1 week
    min_password_length: int = 6
    # Failed logins per email back off after a few attempts; registrations are
    # limited per client address in a fixed window.
    register_rate_limit: int = 5
    register_rate_window_seconds: int = 60
    # Seeded on startup when both are set; admins never self-register.
    admin_email: str | None = None
    admin_password: str | None = None

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    stripe_price_monthly: str = ""
    stripe_price_yearly: str = ""

    @property
    def db_path(self) -> Path:
        return self.data_dir / "marketplace.sqlite"

    model_config = {"env_prefix": "MARKETPLACE_"}


settings = Settings()
