from pathlib import Path

import humanfriendly
from pydantic import BaseModel
from typing import List
from dotenv import load_dotenv
import os

load_dotenv()


class Config(BaseModel):
    # Database
    DATABASE_URL: str

    # JWT & Security
    JWT_SECRET: str
    JWT_ALG: str
    ACCESS_TTL_MIN: int
    REFRESH_TTL_DAYS: int

    # Uploads
    ALLOWED_MIME_TYPES: List[str]
    MAX_FILE_SIZE: int
    STORAGE_PATH: Path

    # FastAPI
    FASTAPI_HOST: str
    FASTAPI_PORT: int
    CORS_ORIGINS: List[str]
    ENVIRONMENT: str

    # Logging
    LOG_LEVEL: str

    # Async I/O
    MAX_CONCURRENT_IO: int

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


config = Config(
    DATABASE_URL=os.environ["DATABASE_URL"],

    JWT_SECRET=os.environ["JWT_SECRET"],
    JWT_ALG=os.getenv("JWT_ALG", "HS256"),
    ACCESS_TTL_MIN=int(os.getenv("ACCESS_TTL_MIN", "60")),
    REFRESH_TTL_DAYS=int(os.getenv("REFRESH_TTL_DAYS", "30")),

    ALLOWED_MIME_TYPES=os.getenv(
        "ALLOWED_MIME_TYPES",
        "image/jpeg,image/png,image/gif,video/mp4,video/quicktime"
    ).split(","),
    MAX_FILE_SIZE=humanfriendly.parse_size(os.getenv("MAX_FILE_SIZE", "10MB")),
    STORAGE_PATH=Path(os.getenv("STORAGE_PATH", "uploads")),

    FASTAPI_HOST=os.getenv("FASTAPI_HOST", "0.0.0.0"),
    FASTAPI_PORT=int(os.getenv("FASTAPI_PORT", "3000")),
    CORS_ORIGINS=os.getenv("CORS_ORIGINS", "*").split(","),
    ENVIRONMENT=os.getenv("ENVIRONMENT", "production"),

    LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),

    MAX_CONCURRENT_IO=int(os.getenv("MAX_CONCURRENT_IO", "8")),
)

__all__ = ["config"]
