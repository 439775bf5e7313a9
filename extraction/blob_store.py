# extraction/blob_store.py
"""
Local-disk binary store for uploaded menu images.

Gateway contract used by the pipeline and the portal:
    upload(data, filename, metadata) -> id
    get_stream(id) -> (binary stream, {"contentType", "length", "filename", ...})
    exists(id) -> bool
    delete(id) -> bool

Each blob is stored as <root>/<id><ext> with a <root>/<id>.json sidecar holding
its metadata. Ids are opaque 32-char hex strings.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from .menu_types import utc_now_iso

log = logging.getLogger(__name__)

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".pdf": "application/pdf",
}

_ID_RX = re.compile(r"^[0-9a-f]{32}$")


def content_type_for(filename: str) -> str:
    return _CONTENT_TYPES.get(Path(filename or "").suffix.lower(), "application/octet-stream")


def _safe_ext(filename: str) -> str:
    ext = Path(filename or "").suffix.lower()
    return ext if ext in _CONTENT_TYPES else ".bin"


class BlobNotFound(KeyError):
    """No blob stored under the requested id."""


class LocalBlobStore:
    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    # ----- paths -----
    def _meta_path(self, blob_id: str) -> Path:
        if not _ID_RX.match(blob_id or ""):
            raise BlobNotFound(blob_id)
        return self.root / f"{blob_id}.json"

    def _read_meta(self, blob_id: str) -> Dict[str, Any]:
        p = self._meta_path(blob_id)
        if not p.exists():
            raise BlobNotFound(blob_id)
        return json.loads(p.read_text(encoding="utf-8"))

    def _data_path(self, blob_id: str, meta: Dict[str, Any]) -> Path:
        return self.root / f"{blob_id}{meta.get('ext') or '.bin'}"

    # ----- gateway -----
    def upload(self, data: bytes, filename: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        blob_id = uuid.uuid4().hex
        ext = _safe_ext(filename)
        meta = {
            "id": blob_id,
            "filename": Path(filename or f"upload{ext}").name,
            "contentType": content_type_for(filename) if ext != ".bin" else "application/octet-stream",
            "length": len(data),
            "ext": ext,
            "uploadedAt": utc_now_iso(),
            "metadata": dict(metadata or {}),
        }
        (self.root / f"{blob_id}{ext}").write_bytes(data)
        self._meta_path(blob_id).write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")
        log.info("Stored blob %s (%s, %d bytes)", blob_id, meta["contentType"], len(data))
        return blob_id

    def get_stream(self, blob_id: str) -> Tuple[BinaryIO, Dict[str, Any]]:
        meta = self._read_meta(blob_id)
        path = self._data_path(blob_id, meta)
        if not path.exists():
            raise BlobNotFound(blob_id)
        return path.open("rb"), {
            "contentType": meta.get("contentType") or "application/octet-stream",
            "length": meta.get("length", path.stat().st_size),
            "filename": meta.get("filename") or path.name,
            "uploadedAt": meta.get("uploadedAt"),
            "metadata": meta.get("metadata") or {},
        }

    def exists(self, blob_id: str) -> bool:
        try:
            meta = self._read_meta(blob_id)
        except (BlobNotFound, ValueError):
            return False
        return self._data_path(blob_id, meta).exists()

    def delete(self, blob_id: str) -> bool:
        try:
            meta = self._read_meta(blob_id)
        except (BlobNotFound, ValueError):
            return False
        self._data_path(blob_id, meta).unlink(missing_ok=True)
        self._meta_path(blob_id).unlink(missing_ok=True)
        log.info("Deleted blob %s", blob_id)
        return True

    def list_ids(self) -> List[str]:
        return sorted(p.stem for p in self.root.glob("*.json") if _ID_RX.match(p.stem))
