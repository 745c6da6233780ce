from typing import List
import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Criseo Crisis Resource API"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # Paths
    DATA_DIR: str = os.path.join(os.getcwd(), 'data')

    # Database
    DATABASE_URL: str = f"sqlite:///{os.path.join(os.getcwd(), 'data', 'criseo.db')}"

    # CORS settings
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Search defaults
    DEFAULT_SEARCH_RADIUS_KM: float = 10.0
    DEFAULT_SEARCH_STATUS: str = "available"

    # Inventory
    EXPIRY_WARNING_DAYS: int = 7

    # Local LLM runtime
    OLLAMA_HOST: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "gemma3n:e2b"
    OLLAMA_TIMEOUT: float = 120.0

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
