"""
Disk storage for uploaded images.

Files land in ``settings.upload_dir`` as ``<epoch-millis>-<8 hex>-<original name>``.
The returned path is prefixed with ``settings.base_url`` when one is set.
"""
import logging
import secrets
import time
from pathlib import Path
from typing import List, Optional

from fastapi import HTTPException, UploadFile

from config import Settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def public_path(relative_path: str, settings: Settings) -> str:
    if settings.base_url:
        return f"{settings.base_url.rstrip('/')}/{relative_path}"
    return relative_path


def save_upload(upload: UploadFile, settings: Settings) -> str:
    directory = Path(settings.upload_dir)
    directory.mkdir(parents=True, exist_ok=True)

    original_name = Path(upload.filename or "upload").name
    filename = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{original_name}"
    destination = directory / filename

    written = 0
    with destination.open("wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.max_upload_bytes:
                break
            out.write(chunk)

    if written > settings.max_upload_bytes:
        destination.unlink(missing_ok=True)
        raise HTTPException(status_code=413, detail=f"File too large: {original_name}")

    logger.info("Stored upload %s (%d bytes)", destination, written)
    return public_path(f"{directory.as_posix()}/{filename}", settings)


def save_optional_upload(upload: Optional[UploadFile], settings: Settings) -> Optional[str]:
    # browsers send an empty part when no file was chosen
    if upload is None or not upload.filename:
        return None
    return save_upload(upload, settings)


def save_uploads(uploads: List[UploadFile], settings: Settings) -> List[str]:
    if len(uploads) > settings.max_upload_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files, at most {settings.max_upload_files} allowed",
        )
    return [save_upload(u, settings) for u in uploads if u.filename]
