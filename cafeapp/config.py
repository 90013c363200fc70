from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str
    JWT_ISS: str = "cafe-orders"
    JWT_EXP_MIN: int = 24*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    REDIS_URL: str | None = None
    NOTIFY_TIMEOUT_SEC: float = 2.0
    REALTIME_TOKEN_TTL_SEC: int = 300
    DEFAULT_CAFE_SLUG: str = "sample-cafe"
    CORS_ORIGINS: list[str] = ["*"]
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

def load_settings() -> Settings:
    return Settings()
