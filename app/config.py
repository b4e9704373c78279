from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    db_name: str = "onboarding_db"
    db_user: str = "postgres"
    db_password: str = ""
    db_host: str = "localhost"
    db_port: str = "5432"

    # Environment
    env: str = "development"
    debug: bool = True

    # Public origin of the web app; redirects are built against it
    app_url: str = "http://localhost:3000"

    # Session cookie issued by the auth callback
    session_cookie_name: str = "session"
    session_cookie_days: int = 5
    session_cookie_secure: bool = False

    # Onboarding
    preference_cache_ttl_seconds: float = 30.0
    trial_duration_hours: int = 48
    loading_timeout_seconds: float = 15.0
    default_plan_id: str = "pro"

    # Server-sent events keep-alive interval
    events_keepalive_seconds: float = 15.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
