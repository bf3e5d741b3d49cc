from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Workers write with the service role (RLS bypass)
    store_timeout_sec: float = 10.0  # Deadline for every PostgREST round trip

    # Limits
    max_groups_per_user: int = 20
    max_members_per_group: int = 10
    max_group_name_length: int = 50
    invite_expiry_days: int = 7

    # Job queue
    job_max_attempts: int = 5
    job_backoff_base_sec: float = 2.0
    job_backoff_max_sec: float = 300.0
    job_lease_sec: int = 60  # In-flight jobs whose lease expired are redelivered
    worker_poll_interval_sec: float = 1.0
    worker_concurrency: int = 2

    # App
    app_name: str = "huddle-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def backoff_delay(self, attempts: int) -> float:
        """Seconds to wait before the next attempt after `attempts` tries."""
        exponent = max(attempts - 1, 0)
        return min(self.job_backoff_base_sec * (2 ** exponent), self.job_backoff_max_sec)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
