# paper_kb/storage/blobs.py

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "html": "html",
    "pdf": "pdf",
}


class BlobStore:
    """
    Raw downloaded content on the local filesystem.

    Layout:  <root>/<kind>/<arxiv_id>.<ext>  plus a  .sha256  sidecar
    holding the hex digest of the stored bytes.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def path_for(self, kind: str, arxiv_id: str) -> Path:
        ext = _EXTENSIONS.get(kind)
        if ext is None:
            raise ValueError(f"Unknown blob kind: {kind!r}")
        # Old-style ids ("hep-th/9901001") contain a slash.
        safe_id = arxiv_id.replace("/", "_")
        return self.root / kind / f"{safe_id}.{ext}"

    def put(self, kind: str, arxiv_id: str, data: Union[str, bytes]) -> str:
        """Write the blob (overwriting any previous copy) and return its SHA-256 hex digest."""
        if isinstance(data, str):
            data = data.encode("utf-8")

        path = self.path_for(kind, arxiv_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

        digest = hashlib.sha256(data).hexdigest()
        path.with_name(path.name + ".sha256").write_text(digest, encoding="utf-8")

        logger.debug("Stored %s blob for %s (%d bytes) at %s", kind, arxiv_id, len(data), path)
        return digest

    def get(self, kind: str, arxiv_id: str) -> Optional[bytes]:
        path = self.path_for(kind, arxiv_id)
        if not path.exists():
            return None
        return path.read_bytes()

    def digest(self, kind: str, arxiv_id: str) -> Optional[str]:
        sidecar = self.path_for(kind, arxiv_id)
        sidecar = sidecar.with_name(sidecar.name + ".sha256")
        if not sidecar.exists():
            return None
        return sidecar.read_text(encoding="utf-8").strip()

    def exists(self, kind: str, arxiv_id: str) -> bool:
        return self.path_for(kind, arxiv_id).exists()
