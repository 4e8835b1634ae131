# config.py
from functools import lru_cache
from typing import Literal
from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEV_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    SECRET_KEY: SecretStr = SecretStr(_DEV_SECRET)
    DATABASE_URL: str = "sqlite:///./frameguessr.db"

    # Entorno y CORS
    ENV: Literal["development", "production", "test"] = "development"
    ALLOWED_ORIGINS: list[str] = []

    ALGORITHM: str = "HS256"

    # Reglas del juego y almacenamiento
    GAME_MAX_ATTEMPTS: int = 3
    STORAGE_KEY_PREFIX: str = "frameguessr"
    RETENTION_DAYS: int = 30

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WRITES: str = "30/minute"

    LOG_LEVEL: str = "INFO"

    @field_validator("DATABASE_URL")
    @classmethod
    def normalize_db_url(cls, v: str) -> str:
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, v):
        # Permite "a,b,c" en envs además de JSON
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v or []

    @model_validator(mode="after")
    def validate_production(self):
        if self.ENV == "production":
            if not self.ALLOWED_ORIGINS:
                raise ValueError("ALLOWED_ORIGINS is empty in production.")
            if "*" in self.ALLOWED_ORIGINS:
                raise ValueError("CORS wildcard (*) is not allowed in production.")
            if self.SECRET_KEY.get_secret_value() == _DEV_SECRET:
                raise ValueError("SECRET_KEY must be set in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
