# File: app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import os


class Settings(BaseSettings):
    # ---------------------------
    # Meta / Pydantic settings
    # ---------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore unexpected env vars instead of erroring
    )

    # ---------------------------
    # Database (Postgres in production, SQLite fallback for local runs)
    # ---------------------------
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./eventpass.db")

    # ---------------------------
    # API / Project
    # ---------------------------
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "EventPass API")

    # ---------------------------
    # Environment / Logging
    # ---------------------------
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")  # development | staging | production
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---------------------------
    # Media (QR images, face images)
    # ---------------------------
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    MEDIA_ROOT: str = os.getenv("MEDIA_ROOT", "./uploads")

    # ---------------------------
    # Credentials (QR payloads, short links)
    # ---------------------------
    # AES-256 key and CBC IV, hex encoded. Override both in every deployed environment.
    CREDENTIAL_KEY: str = os.getenv(
        "CREDENTIAL_KEY",
        "6b3f0c1d9a7e4b2c8d5f1a3e7c9b0d2f4a6c8e0b1d3f5a7c9e1b3d5f7a9c0e2b",
    )
    CREDENTIAL_IV: str = os.getenv("CREDENTIAL_IV", "3c7e1a9b5d2f8c4e0a6b2d8f4c1e7a3b")
    CREDENTIAL_MAC_KEY: Optional[str] = os.getenv("CREDENTIAL_MAC_KEY")
    SHORT_LINK_TTL_DAYS: int = int(os.getenv("SHORT_LINK_TTL_DAYS", "30"))

    # ---------------------------
    # Face matching service
    # ---------------------------
    FACE_MATCHER_URL: Optional[str] = os.getenv("FACE_MATCHER_URL")
    FACE_MATCHER_API_KEY: Optional[str] = os.getenv("FACE_MATCHER_API_KEY")
    FACE_MATCH_THRESHOLD: float = float(os.getenv("FACE_MATCH_THRESHOLD", "70"))
    FACE_MATCH_TIMEOUT_SECONDS: float = float(os.getenv("FACE_MATCH_TIMEOUT_SECONDS", "5"))
    FACE_MATCH_CONCURRENCY: int = int(os.getenv("FACE_MATCH_CONCURRENCY", "16"))
    FACE_MATCH_STRATEGY: str = os.getenv("FACE_MATCH_STRATEGY", "best")  # best | first
    FACE_MAX_IMAGE_BYTES: int = int(os.getenv("FACE_MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))

    # ---------------------------
    # Registration / scanning policy
    # ---------------------------
    REQUIRE_REGISTRATION_NUMBER: bool = (
        os.getenv("REQUIRE_REGISTRATION_NUMBER", "true").lower() == "true"
    )
    STATUS_UPDATE_RETRIES: int = int(os.getenv("STATUS_UPDATE_RETRIES", "3"))

    # ---------------------------
    # Derived / Convenience
    # ---------------------------
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def media_url(self) -> str:
        """Public prefix under which uploaded/generated files are served."""
        return f"{self.BASE_URL.rstrip('/')}/uploads"


settings = Settings()
