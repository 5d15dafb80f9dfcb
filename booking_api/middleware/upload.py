# booking_api/middleware/upload.py - where uploaded files land and what is accepted
import os
import re
import time
import secrets
import logging
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from fastapi import UploadFile

from booking_api.config import settings

logger = logging.getLogger(__name__)

class Destination(NamedTuple):
    subdirectory: str
    prefix: str

# Mount path of the router handling the upload -> storage folder and filename prefix
UPLOAD_DESTINATIONS: Dict[str, Destination] = {
    "/api/v1/facilities": Destination("facilities", "facility"),
    "/api/v1/users": Destination("users", "user"),
    "/api/v1/inventory-items": Destination("inventory", "inventory"),
    "/api/v1/companies": Destination("companies", "company"),
    "/api/v1/company": Destination("company", "company"),
    "/api/v1/support": Destination("support", "support"),
}

DEFAULT_DESTINATION = Destination("general", "file")

ALLOWED_IMAGE_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
]

ALLOWED_DOCUMENT_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
]

ALLOWED_TYPES = ALLOWED_IMAGE_TYPES + ALLOWED_DOCUMENT_TYPES

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

CHUNK_SIZE = 64 * 1024

class InvalidFileTypeError(ValueError):
    pass

class UploadTooLargeError(ValueError):
    pass

def destination_for(mount_path: str) -> Destination:
    return UPLOAD_DESTINATIONS.get(mount_path, DEFAULT_DESTINATION)

def resolve_destination(mount_path: str, root: Optional[str] = None) -> Path:
    """Storage directory for a mount path, created on first use"""
    directory = Path(root or settings.upload_root) / destination_for(mount_path).subdirectory
    directory.mkdir(parents=True, exist_ok=True)
    return directory

def sanitize_filename(original_name: str) -> str:
    """Keep only ASCII letters, digits, dots and hyphens"""
    return _UNSAFE_CHARS.sub("", original_name or "")

def build_filename(mount_path: str, original_name: str) -> str:
    """{prefix}-{epoch ms}-{random}-{base}{ext}"""
    sanitized = sanitize_filename(original_name)
    base, extension = os.path.splitext(sanitized)
    unique_suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}"
    return f"{destination_for(mount_path).prefix}-{unique_suffix}-{base}{extension}"

def validate_file_type(mimetype: Optional[str]) -> str:
    if mimetype not in ALLOWED_TYPES:
        raise InvalidFileTypeError(
            f"Invalid file type: {mimetype}. Allowed types: {', '.join(ALLOWED_TYPES)}"
        )
    return mimetype

async def store_upload(
    file: UploadFile,
    mount_path: str,
    root: Optional[str] = None,
    max_bytes: Optional[int] = None
) -> Dict[str, Any]:
    """Validate and write one uploaded file; nothing is left behind on rejection"""
    validate_file_type(file.content_type)
    limit = max_bytes or settings.upload_max_bytes

    directory = resolve_destination(mount_path, root)
    filename = build_filename(mount_path, file.filename or "")
    target = directory / filename

    size = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > limit:
                    raise UploadTooLargeError(
                        f"File size exceeds {limit / (1024 * 1024):.0f}MB limit"
                    )
                out.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    logger.info(f"📤 Stored upload {filename} ({size} bytes) for {mount_path}")

    return {
        "filename": filename,
        "originalName": file.filename,
        "mimetype": file.content_type,
        "size": size,
        "path": f"{directory.name}/{filename}",
        "url": f"/uploads/{directory.name}/{filename}",
    }
