from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_NAME: str = "Calmflow Session Core"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_VERSION: str = "1.0.0"

    DATABASE_URL: str = "sqlite:///./calmflow.db"
    LOG_LEVEL: str = "INFO"

    TICK_INTERVAL_SECONDS: float = 1.0
    SNAPSHOT_INTERVAL_SECONDS: int = 15
    SNAPSHOT_MAX_AGE_MINUTES: int = 120

    MIN_TIME_BEFORE_CHECK_IN: int = 180
    AUTO_CHECK_IN: bool = True
    AUTO_ADVANCE: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

settings = Settings()
