from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Beer Game Session Server"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # Game defaults applied when a create request leaves a field out
    DEFAULT_MAX_ROUNDS: int = Field(default=24, ge=1)
    DEFAULT_INVENTORY_COST: float = Field(default=0.5, ge=0)
    DEFAULT_STOCKOUT_COST: float = Field(default=1.0, ge=0)
    DEFAULT_DELIVERY_DELAY: int = Field(default=2, ge=1)
    DEFAULT_INITIAL_INVENTORY: int = Field(default=12, ge=0)
    MAX_ROUNDS_LIMIT: int = Field(default=200, ge=1)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        # Allow a comma separated string in the environment
        if isinstance(v, str) and not v.startswith("["):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()
