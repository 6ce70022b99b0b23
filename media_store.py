"""
Media Store Client

Uploads one image to Cloudinary with an unsigned upload preset and returns
the hosted ``secure_url``. No retries; no timeout unless one is configured.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from errors import UploadFailed
from settings import DEFAULT_UPLOAD_URL, Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaAsset:
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _error_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return error
    return None


class MediaStoreClient:
    def __init__(
        self,
        cloud_name: str,
        upload_preset: str,
        upload_url: str = DEFAULT_UPLOAD_URL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cloud_name = cloud_name
        self.upload_preset = upload_preset
        self.upload_url = upload_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaStoreClient":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            upload_preset=settings.cloudinary_upload_preset,
            upload_url=settings.cloudinary_upload_url,
            timeout=settings.upload_timeout_seconds,
        )

    @property
    def endpoint(self) -> str:
        return self.upload_url.format(cloud_name=self.cloud_name)

    def upload(self, asset: MediaAsset) -> str:
        files = {"file": (asset.filename, asset.data, asset.content_type or "application/octet-stream")}
        fields: Dict[str, str] = {"upload_preset": self.upload_preset, "cloud_name": self.cloud_name}

        logger.debug("Uploading %s (%d bytes) to %s", asset.filename, asset.size, self.endpoint)
        try:
            response = self.session.post(self.endpoint, files=files, data=fields, timeout=self.timeout)
        except requests.RequestException as e:
            raise UploadFailed(f"Image upload failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            reason = _error_message(payload) or f"Image upload failed with HTTP {response.status_code}"
            raise UploadFailed(reason)

        url = payload.get("secure_url") if isinstance(payload, dict) else None
        if not url:
            raise UploadFailed(_error_message(payload) or "Image upload failed")

        logger.debug("Uploaded %s -> %s", asset.filename, url)
        return url
