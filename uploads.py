"""
Upload Orchestrator

Validates images as they are staged, keeps them in staging order, and uploads
them one at a time on commit. Assets that already hold a remote URL are not
uploaded again, so a resubmission after a failure only sends what is missing.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from errors import TooLarge, UnsupportedType, UploadFailed
from media_store import MediaAsset, MediaStoreClient
from previews import PreviewPool
from schemas import ALLOWED_IMAGE_TYPES, MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)


@dataclass
class PendingUpload:
    asset: MediaAsset
    preview_url: str
    remote_url: Optional[str] = None

    @property
    def uploaded(self) -> bool:
        return self.remote_url is not None


class UploadOrchestrator:
    def __init__(
        self,
        media_store: MediaStoreClient,
        previews: PreviewPool,
        max_bytes: int = MAX_UPLOAD_BYTES,
        allowed_types: Sequence[str] = ALLOWED_IMAGE_TYPES,
    ) -> None:
        self.media_store = media_store
        self.previews = previews
        self.max_bytes = max_bytes
        self.allowed_types = tuple(allowed_types)
        self._pending: List[PendingUpload] = []

    @property
    def pending(self) -> List[PendingUpload]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def stage_asset(self, asset: MediaAsset) -> PendingUpload:
        if asset.content_type not in self.allowed_types:
            logger.info("Rejected %s: unsupported type %s", asset.filename, asset.content_type)
            raise UnsupportedType(asset.filename, asset.content_type)
        if asset.size > self.max_bytes:
            logger.info("Rejected %s: %d bytes exceeds %d", asset.filename, asset.size, self.max_bytes)
            raise TooLarge(asset.filename, asset.size, self.max_bytes)

        pending = PendingUpload(asset=asset, preview_url=self.previews.create(asset))
        self._pending.append(pending)
        return pending

    def remove(self, preview_url: str) -> bool:
        """Unstage one asset. Returns False when nothing was staged under that URL."""
        for i, pending in enumerate(self._pending):
            if pending.preview_url == preview_url or pending.preview_url.endswith("/" + preview_url):
                del self._pending[i]
                self.previews.release(pending.preview_url)
                return True
        return False

    def clear(self) -> None:
        """Drop every staged asset, releasing each preview once."""
        pending, self._pending = self._pending, []
        for p in pending:
            self.previews.release(p.preview_url)

    def commit_all(self) -> List[str]:
        """Upload every staged asset in order and return the URLs in that order.

        Stops at the first failure. Earlier uploads are not rolled back on the
        media host; they stay recorded on their pending entries.
        """
        for index, pending in enumerate(self._pending):
            if pending.uploaded:
                continue
            try:
                pending.remote_url = self.media_store.upload(pending.asset)
            except UploadFailed as e:
                completed = sum(1 for p in self._pending if p.uploaded)
                logger.warning(
                    "Upload %d/%d (%s) failed after %d succeeded: %s",
                    index + 1, len(self._pending), pending.asset.filename, completed, e.reason,
                )
                raise UploadFailed(e.reason, completed=completed, failed_index=index) from e
        return [p.remote_url for p in self._pending]
