"""
Blob storage for lesson and quiz media (Supabase Storage).

Files arrive base64 encoded (optionally as a data URL), are stored under a
timestamped, sanitized key and exposed through the bucket's public URL.
"""

import base64
import binascii
import logging
import re
import time

from app.core.config import settings
from app.core.errors import BlobStoreError, ValidationError

logger = logging.getLogger(__name__)

MEDIA_FOLDERS = {"lesson": "lesson-files", "quiz": "quiz-media"}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def decode_file_data(file_data: str) -> bytes:
    """Decode a base64 payload, accepting `data:<type>;base64,<payload>` URLs."""
    payload = file_data.split(",", 1)[1] if "," in file_data else file_data
    if not payload:
        raise ValidationError("Invalid file data format")
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid file data format")
    if not content:
        raise ValidationError("Empty file data")
    return content


def build_object_key(folder: str, file_name: str) -> str:
    sanitized = _UNSAFE_CHARS.sub("_", file_name)
    return f"{folder}/{int(time.time() * 1000)}-{sanitized}"


def put_object(db, key: str, content: bytes, content_type: str) -> str:
    """Upload bytes under `key`, retrying transient failures. Returns the public URL."""
    bucket = db.storage.from_(settings.STORAGE_BUCKET)
    attempts = max(1, settings.UPLOAD_RETRIES)

    for attempt in range(1, attempts + 1):
        try:
            bucket.upload(
                key,
                content,
                {"content-type": content_type, "upsert": "false"},
            )
            break
        except Exception as e:
            if attempt == attempts:
                logger.error("Upload of %s failed after %d attempts: %s", key, attempts, e)
                raise BlobStoreError(f"Failed to upload file: {e}") from e
            logger.warning(
                "Upload of %s failed, retrying (%d attempts left): %s",
                key, attempts - attempt, e,
            )
            time.sleep(settings.UPLOAD_RETRY_DELAY)

    url = bucket.get_public_url(key)
    logger.info("Uploaded %s (%d bytes)", key, len(content))
    return url


def delete_objects(db, keys: list[str]) -> None:
    if not keys:
        return
    db.storage.from_(settings.STORAGE_BUCKET).remove(keys)
    logger.info("Removed %d object(s) from %s", len(keys), settings.STORAGE_BUCKET)


def upload_media(db, kind: str, file_name: str, content_type: str, file_data: str) -> dict:
    folder = MEDIA_FOLDERS.get(kind)
    if folder is None:
        raise ValidationError(f"Unknown media kind '{kind}'")
    content = decode_file_data(file_data)
    key = build_object_key(folder, file_name)
    url = put_object(db, key, content, content_type)
    return {
        "name": file_name,
        "type": content_type,
        "url": url,
        "size": len(content),
        "path": key,
    }
