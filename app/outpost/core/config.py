from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "Outpost"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./outpost.db"
    REPOSITORY_TIMEOUT_SECONDS: float = 5.0
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True

    CACHE_BACKEND: str = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 0.5
    CACHE_KEY_PREFIX: str = "outpost"
    CACHE_TTL_CATALOG: int = 600
    CACHE_TTL_LOCATIONS: int = 1800
    CACHE_TTL_TRANSACTIONS: int = 1800
    CACHE_TTL_ACCOUNTS: int = 3600
    CACHE_TTL_STATIC: int = 86400

    DASHBOARD_MAX_RANGE_DAYS: int = 90
    DASHBOARD_TOP_N: int = 5
    PAGINATION_DEFAULT_LIMIT: int = 20
    PAGINATION_MAX_LIMIT: int = 100


settings = Settings()
