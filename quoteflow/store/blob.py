"""Filesystem blob store.

Files land under ``root`` at the given relative path; the returned URL is
``base_url`` joined with that path, which the deployment serves statically.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath

from quoteflow.config import BlobConfig
from quoteflow.errors import StoreUnavailable, ValidationFailed
from quoteflow.store.base import BlobStore

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    def __init__(self, root: Path, base_url: str = "/files"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_config(cls, config: BlobConfig) -> LocalBlobStore:
        return cls(config.root, config.base_url)

    def resolve(self, path: str) -> Path:
        """Absolute filesystem location for a relative blob path.

        Raises:
            ValidationFailed: If the path is absolute or escapes the root
        """
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise ValidationFailed(f"Invalid blob path: {path!r}")
        return self.root.joinpath(*relative.parts)

    async def upload(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> str:
        target = self.resolve(path)
        try:
            await asyncio.to_thread(_write_file, target, data)
        except OSError as exc:
            raise StoreUnavailable(f"Failed to write blob {path}: {exc}") from exc

        logger.info("Stored blob %s (%d bytes, %s)", path, len(data), content_type or "unknown")
        return f"{self.base_url}/{PurePosixPath(path)}"


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as f:
        f.write(data)
