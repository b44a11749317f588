# meter_app/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
import json
import logging
from typing import Optional
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]  # project root
ENV_PATH = BASE_DIR / ".env"

# Reference OCR deployment the web client was built against
DEFAULT_OCR_API_URL = "https://water-meter-api-732977633142.asia-southeast1.run.app/api/read-meter"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        extra="ignore",
    )

    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Auth / JWT
    SECRET_KEY: str = Field(default="change-me")
    ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_HOURS: int = Field(default=24)

    # Frontend / CORS
    FRONTEND_URL: Optional[str] = None
    CORS_ORIGINS: Optional[str] = None

    def get_cors_origins(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return []
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                items = json.loads(raw)
                return [str(x).strip().rstrip("/") for x in items if str(x).strip()]
            except ValueError:
                return []
        return [x.strip().rstrip("/") for x in raw.split(",") if x.strip()]

    # Mongo (all three spellings are seen in deployments)
    MONGODB_URL: Optional[str] = None
    MONGO_URI: Optional[str] = None
    MONGODB_URI: Optional[str] = None
    MONGODB_DB: str = Field(default="water_meter")

    def get_mongo_uri(self) -> str:
        uri = (self.MONGODB_URL or self.MONGO_URI or self.MONGODB_URI or "").strip()
        if not uri:
            raise RuntimeError("Mongo URI is not set (set MONGODB_URL or MONGO_URI or MONGODB_URI)")
        return uri

    # Image storage
    UPLOAD_DIR: str = Field(default=str(BASE_DIR / "uploads"))
    IMAGE_BUCKET: str = Field(default="meter-images")
    PUBLIC_BASE_URL: str = Field(default="http://localhost:8000")
    MEDIA_URL_PATH: str = Field(default="/media")

    # Remote recognition
    OCR_API_URL: str = Field(default=DEFAULT_OCR_API_URL)
    OCR_TIMEOUT_SECONDS: float = Field(default=60.0)
    OCR_TIMEOUT_MARKERS: str = Field(default="FUNCTION_INVOCATION_TIMEOUT,timeout")

    def get_ocr_timeout_markers(self) -> list[str]:
        return [m.strip() for m in (self.OCR_TIMEOUT_MARKERS or "").split(",") if m.strip()]

    # Ingestion / correction policy
    ENFORCE_LOCATION_CHECK: bool = Field(default=True)
    CORRECTION_REQUIRE_PLACEHOLDER: bool = Field(default=False)


settings = Settings()

logger.debug(f"[config] Loaded env from: {ENV_PATH}")
logger.debug(f"[config] DEBUG={settings.DEBUG} ENVIRONMENT={settings.ENVIRONMENT}")
