from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "doccrud"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000"

    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "doccrud"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    # Page size used when a FieldSpec does not set its own count_limit.
    DEFAULT_COUNT_LIMIT: int = 20

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
