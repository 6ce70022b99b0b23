"""
Local preview resources

Staged images are served back to the admin screen from memory until they are
uploaded or removed. Each handle must be released exactly once.
"""
import logging
from typing import Dict, List
from uuid import uuid4

from errors import PreviewError
from media_store import MediaAsset

logger = logging.getLogger(__name__)


class PreviewPool:
    def __init__(self, base_path: str = "/previews") -> None:
        self.base_path = base_path.rstrip("/")
        self._assets: Dict[str, MediaAsset] = {}

    def _token(self, url: str) -> str:
        return url.rsplit("/", 1)[-1]

    def create(self, asset: MediaAsset) -> str:
        token = uuid4().hex
        self._assets[token] = asset
        return f"{self.base_path}/{token}"

    def get(self, url_or_token: str) -> MediaAsset:
        token = self._token(url_or_token)
        try:
            return self._assets[token]
        except KeyError:
            raise PreviewError(f"Unknown preview: {url_or_token}")

    def release(self, url: str) -> None:
        token = self._token(url)
        if token not in self._assets:
            raise PreviewError(f"Preview already released or never created: {url}")
        del self._assets[token]
        logger.debug("Released preview %s", token)

    def __contains__(self, url: str) -> bool:
        return self._token(url) in self._assets

    @property
    def open_handles(self) -> List[str]:
        return [f"{self.base_path}/{t}" for t in self._assets]
