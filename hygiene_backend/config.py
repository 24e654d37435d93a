from __future__ import annotations

import os
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    DB_URL: str = Field(default=os.getenv("DB_URL", "sqlite:///./app.db"))
    JWT_SECRET: str = Field(default=os.getenv("JWT_SECRET", "change_me"))
    JWT_ALG: str = Field(default=os.getenv("JWT_ALG", "HS256"))
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    )

    # Comma separated; the Vite dev server is the default client
    CORS_ORIGINS: str = Field(
        default=os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )

    LOG_LEVEL: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    LOG_FORMAT: str = Field(default=os.getenv("LOG_FORMAT", "text"))  # text | json

    SENSOR_HISTORY_LIMIT: int = Field(default=int(os.getenv("SENSOR_HISTORY_LIMIT", "1000")))
    FEEDBACK_EDIT_WINDOW_MINUTES: int = Field(
        default=int(os.getenv("FEEDBACK_EDIT_WINDOW_MINUTES", "60"))
    )

    ADMIN_EMAIL: str = Field(default=os.getenv("ADMIN_EMAIL", "admin@example.com"))
    ADMIN_PASSWORD: str = Field(default=os.getenv("ADMIN_PASSWORD", "Admin123!"))

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
