from pydantic_settings import BaseSettings

DAY_MS = 24 * 60 * 60 * 1000


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = []
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    admin_token_lifetime_days: int = 7
    user_token_lifetime_days: int = 14
    session_max_count: int = 1  # Live sessions allowed per account; <= 0 keeps only the newest
    session_lifetime_days: int = 30  # Added to created_at to compute a session's expires_at
    session_retention_days: int = 30  # How long terminated sessions are kept before the sweeper deletes them
    session_sweep_interval_hours: float = 24
    # Peers allowed to set X-Forwarded-For
    trusted_proxies: list[str] = ["127.0.0.1/32", "::1/128", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]
    admin_email: str | None = None  # Bootstrap admin account created on start if missing (optional)
    admin_password: str | None = None

    model_config = {
        "env_file": [".env"],
        "env_prefix": "WARDEN_",
        "extra": "ignore",
    }

    @property
    def session_lifetime_ms(self) -> int:
        return self.session_lifetime_days * DAY_MS

    @property
    def session_retention_ms(self) -> int:
        return self.session_retention_days * DAY_MS
