#config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
    # Application Settings
    APP_NAME: str = "Analysis Store API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # CORS Settings (accept comma-separated strings to avoid JSON parsing in env)
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Store Settings
    STORE_NAME: str = "analysis-store"
    STORE_VERSION: int = 1
    RECENT_ANALYSES_LIMIT: int = 10
    RECOMPUTE_STATS_ON_UPDATE: bool = False

    # Snapshot persistence: memory, file, sql or redis
    SNAPSHOT_BACKEND: str = "file"
    SNAPSHOT_DIR: str = "data"
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./data/analysis_store.db")
    REDIS_URL: Optional[str] = os.environ.get("REDIS_URL", None)
    REDIS_PREFIX: str = "snapshot:"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings: Settings = get_settings()
