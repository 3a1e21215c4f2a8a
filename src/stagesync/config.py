from typing import Optional

from pydantic_settings import BaseSettings

from stagesync.errors import ProductionDatabaseNotSet, StagingDatabaseNotSet


class Settings(BaseSettings):
    staging_database_url: str = ""
    production_database_url: str = ""
    ghost_mode: bool = False  # staging and production share one database
    freshness_column: str = "updated_at"
    sync_interval_minutes: int = 5
    log_level: str = "INFO"

    class Config:
        env_prefix = "STAGESYNC_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def staging_url(self) -> str:
        if not self.staging_database_url:
            raise StagingDatabaseNotSet("STAGESYNC_STAGING_DATABASE_URL is not set")
        return self.staging_database_url

    def production_url(self) -> str:
        if self.ghost_mode:
            return self.staging_url()
        if not self.production_database_url:
            raise ProductionDatabaseNotSet("STAGESYNC_PRODUCTION_DATABASE_URL is not set")
        return self.production_database_url


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
