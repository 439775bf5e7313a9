# portal/app.py
"""
HTTP surface for menu extraction.

    POST /api/menu/extract           multipart "image", or form/JSON "url" | "path" | "text"
    DELETE /api/menu/<id>           stored MenuDocument and its image
    GET  /api/menu/<id>              stored MenuDocument
    GET  /api/menu/image/<image_id>  original uploaded image
    GET  /ocr/health                 recognizer + provider status

JSON envelope: {"ok": true, ...} on success, {"ok": false, "error": "..."} on error.
Degraded extractions (processingStatus "failed") are still 200: the document
explains what went wrong.

"path" is only honored for files under UPLOAD_DIR; anything else is a 400.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, send_file
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from extraction import menu_store
from extraction.blob_store import BlobNotFound
from extraction.config import Settings
from extraction.errors import ValidationError
from extraction.pipeline import MenuExtractionPipeline, build_pipeline

# ------------------------
# App & Config
# ------------------------
SETTINGS = Settings.from_env()

logging.basicConfig(
    level=getattr(logging, SETTINGS.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = Flask(__name__)
# multipart overhead on top of the raw image limit
app.config["MAX_CONTENT_LENGTH"] = SETTINGS.max_image_bytes + 64 * 1024

_pipeline: Optional[MenuExtractionPipeline] = None


def get_pipeline() -> MenuExtractionPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(SETTINGS)
    return _pipeline


def _error(message: str, status: int):
    return jsonify({"ok": False, "error": message}), status


def _upload_path(raw: str) -> str:
    """Resolve a client-supplied path; it must stay inside the upload directory."""
    root = get_pipeline().settings.upload_dir.resolve()
    p = Path(raw)
    resolved = (p if p.is_absolute() else root / p).resolve()
    if resolved != root and root not in resolved.parents:
        raise ValidationError("Path must point to a file inside the upload directory")
    return str(resolved)


def _request_fields() -> Dict[str, Any]:
    """url/path/text/lang from a JSON body or form fields."""
    data: Dict[str, Any] = {}
    if request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            data.update(body)
    for key in ("url", "path", "text", "lang"):
        val = request.form.get(key)
        if val:
            data.setdefault(key, val)
    return data


# ------------------------
# Menu extraction
# ------------------------
@app.post("/api/menu/extract")
def extract_menu():
    try:
        fields = _request_fields()
        upload = request.files.get("image")
        image_bytes = None
        filename = None
        if upload is not None and upload.filename:
            filename = secure_filename(upload.filename) or "upload.jpg"
            image_bytes = upload.read()
            if not image_bytes:
                return _error("Uploaded image is empty", 400)

        doc = get_pipeline().extract(
            image_bytes=image_bytes,
            path=_upload_path(str(fields["path"])) if fields.get("path") else None,
            url=fields.get("url") or None,
            text=fields.get("text") or None,
            filename=filename,
            language_hint=fields.get("lang") or None,
        )
    except RequestEntityTooLarge:
        return _error("File too large. Try a smaller image or raise MAX_IMAGE_BYTES.", 413)
    except ValidationError as e:
        return _error(str(e), 400)

    menu_id = menu_store.save_menu_document(doc)
    log.info(
        "Menu %s stored: %s via %s (%d items)",
        menu_id, doc.processing_status, doc.extraction_method, doc.total_items,
    )
    return jsonify({"ok": True, "menuId": menu_id, "menu": doc.to_dict()}), 200


@app.get("/api/menu/<int:menu_id>")
def get_menu(menu_id: int):
    doc = menu_store.get_menu_document(menu_id)
    if doc is None:
        return _error("Menu not found", 404)
    return jsonify({"ok": True, "menu": doc})


@app.delete("/api/menu/<int:menu_id>")
def delete_menu(menu_id: int):
    doc = menu_store.delete_menu_document(menu_id)
    if doc is None:
        return _error("Menu not found", 404)
    image_id = doc.get("imageId")
    store = get_pipeline().blob_store
    image_deleted = bool(image_id and store is not None and store.delete(image_id))
    log.info("Menu %s deleted (image removed: %s)", menu_id, image_deleted)
    return jsonify({"ok": True, "menuId": menu_id, "imageDeleted": image_deleted})


@app.get("/api/menu/image/<image_id>")
def get_menu_image(image_id: str):
    store = get_pipeline().blob_store
    if store is None:
        return _error("Image storage is not configured", 404)
    try:
        stream, info = store.get_stream(image_id)
    except BlobNotFound:
        return _error("Image not found", 404)
    return send_file(
        stream,
        mimetype=info["contentType"],
        download_name=info.get("filename") or image_id,
    )


@app.errorhandler(RequestEntityTooLarge)
def _too_large(_e):
    return _error("File too large. Try a smaller image or raise MAX_IMAGE_BYTES.", 413)


# ------------------------
# Health
# ------------------------
@app.get("/ocr/health")
def ocr_health_route():
    return jsonify({"ok": True, "data": get_pipeline().health()})


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=False)
