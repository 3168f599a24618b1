import base64
import binascii
import logging
import os
import re
import secrets

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from courtslot.services.errors import StorageError, ValidationError
from courtslot.utils import clock

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<body>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "application/pdf": "pdf",
}


def _decode(evidence):
    if isinstance(evidence, FileStorage):
        ext = os.path.splitext(secure_filename(evidence.filename or ""))[1].lstrip(".").lower()
        if ext not in _EXTENSIONS.values():
            raise ValidationError("Unsupported proof of payment file type")
        return evidence.read(), ext

    if not isinstance(evidence, str) or not evidence.strip():
        raise ValidationError("Proof of payment is empty")

    mime, body = "image/png", evidence.strip()
    match = _DATA_URL.match(body)
    if match:
        mime, body = match.group("mime").lower(), match.group("body")
    ext = _EXTENSIONS.get(mime)
    if ext is None:
        raise ValidationError(f"Unsupported proof of payment type {mime}")

    try:
        return base64.b64decode(body, validate=True), ext
    except (binascii.Error, ValueError):
        raise ValidationError("Proof of payment is not valid base64")


def store_payment_evidence(evidence, prefix: str) -> str:
    """Writes the evidence under UPLOAD_FOLDER and returns its relative path."""
    raw, ext = _decode(evidence)

    max_bytes = current_app.config.get("MAX_PROOF_BYTES", 5 * 1024 * 1024)
    if not raw:
        raise ValidationError("Proof of payment is empty")
    if len(raw) > max_bytes:
        raise ValidationError("Proof of payment is too large")

    folder = current_app.config.get("UPLOAD_FOLDER")
    name = secure_filename(f"{prefix}_{int(clock.now().timestamp())}_{secrets.token_hex(4)}.{ext}")
    relative = os.path.join("proofs", name)

    try:
        os.makedirs(os.path.join(folder, "proofs"), exist_ok=True)
        with open(os.path.join(folder, relative), "wb") as fh:
            fh.write(raw)
    except OSError as exc:
        logger.error("failed to store payment evidence %s: %s", relative, exc)
        raise StorageError("Could not store proof of payment")

    logger.info("stored payment evidence %s (%d bytes)", relative, len(raw))
    return relative


def discard(relative_path):
    # used when the commit that referenced the file rolled back
    if not relative_path:
        return
    try:
        os.remove(os.path.join(current_app.config.get("UPLOAD_FOLDER"), relative_path))
    except OSError as exc:
        logger.warning("could not remove orphaned evidence %s: %s", relative_path, exc)
