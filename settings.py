"""
Service configuration

Every value comes from the environment (optionally via a local .env file).
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from errors import ConfigurationError

DEFAULT_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


def _optional_float(name: str) -> Optional[float]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    database_url: Optional[str] = Field(None, description="MongoDB connection string", repr=False)
    database_name: Optional[str] = Field(None, description="MongoDB database name")

    cloudinary_cloud_name: str = Field("", description="Destination identifier on the media host")
    cloudinary_upload_preset: str = Field("", description="Unsigned upload preset")
    cloudinary_upload_url: str = Field(DEFAULT_UPLOAD_URL, description="Upload endpoint template")
    upload_timeout_seconds: Optional[float] = Field(None, gt=0, description="Per-upload timeout, none by default")

    max_upload_bytes: int = Field(5 * 1024 * 1024, ge=1, description="Largest accepted image in bytes")
    status_timeout_seconds: float = Field(3.5, gt=0, description="How long a settled status stays visible")

    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", pattern="^(text|json)$", description="text or json")
    log_file: Optional[str] = Field(None, description="Write logs here instead of stderr")

    port: int = Field(8000, ge=1, le=65535)

    @property
    def database_configured(self) -> bool:
        return bool(self.database_url and self.database_name)

    @property
    def media_store_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_upload_preset)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        try:
            return cls(
                database_url=os.getenv("DATABASE_URL") or None,
                database_name=os.getenv("DATABASE_NAME") or None,
                cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
                cloudinary_upload_preset=os.getenv("CLOUDINARY_UPLOAD_PRESET", ""),
                cloudinary_upload_url=os.getenv("CLOUDINARY_UPLOAD_URL") or DEFAULT_UPLOAD_URL,
                upload_timeout_seconds=_optional_float("UPLOAD_TIMEOUT_SECONDS"),
                max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)),
                status_timeout_seconds=float(os.getenv("STATUS_TIMEOUT_SECONDS", 3.5)),
                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
                log_format=os.getenv("LOG_FORMAT", "text").lower(),
                log_file=os.getenv("LOG_FILE") or None,
                port=int(os.getenv("PORT", 8000)),
            )
        except ValueError as exc:
            # pydantic's ValidationError is a ValueError too
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
