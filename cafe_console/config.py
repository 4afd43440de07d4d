from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # External café REST API
    API_BASE_URL: str = "https://krown-server.onrender.com/api"
    API_TIMEOUT_SECONDS: float = 10.0

    # Signs the credential cookie
    SECRET_KEY: str = "dev-only-change-me"
    ALGORITHM: str = "HS256"

    SESSION_COOKIE_NAME: str = "cafe_console_session"
    SESSION_COOKIE_SECURE: bool = False
    SESSION_MAX_AGE_SECONDS: int = 8 * 60 * 60

    # Read-result cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL_SECONDS: int = 60
    CACHE_ENABLED: bool = True

    # Free-text search waits this long before hitting the API
    SEARCH_DEBOUNCE_SECONDS: float = 0.35

    LOG_LEVEL: str = "INFO"

    # Navigation targets
    LOGIN_PATH: str = "/login"
    UNAUTHORIZED_PATH: str = "/not-authorized"
    STAFF_LANDING_PATH: str = "/dashboard/cafe/redeem"
    ADMIN_LANDING_PATH: str = "/dashboard/cafe"

    MOBILE_COUNTRY_CODE: str = "91"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
