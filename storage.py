"""Attachment storage for booking PDFs and activity files.

Files live under ``STORAGE_DIR`` at ``trips/<trip_id>/<item_id>[-<index>].<ext>``.
Downloads go through expiring HMAC-signed URLs.
"""

import hashlib
import hmac
import os
import re
import secrets
import shutil
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote

# Allow STORAGE_DIR to be configured via environment variable (for Render persistent disk)
STORAGE_DIR = Path(os.environ.get("STORAGE_DIR", Path(__file__).parent / "storage"))
STORAGE_BASE_URL = os.environ.get("STORAGE_BASE_URL", "/files")
# Without a configured key, URLs only stay valid for this process
SIGNING_KEY = os.environ.get("STORAGE_SIGNING_KEY") or secrets.token_hex(32)

DEFAULT_URL_EXPIRY = 3600

MIME_TO_EXT = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

PATH_PATTERN = re.compile(r"^trips/[^/]+/[^/]+\.\w+$")


def is_valid_path(path: str) -> bool:
    """Only ``trips/<trip_id>/<file>`` paths, no traversal."""
    return bool(path and PATH_PATTERN.match(path) and ".." not in path)


def _resolve(path: str) -> Path:
    return Path(STORAGE_DIR) / path


def upload_file(
    trip_id: str,
    item_id: str,
    file_bytes: bytes,
    mime_type: str = "application/pdf",
    index: Optional[int] = None,
) -> str:
    """Store a file and return its storage path. Overwrites an existing file."""
    ext = MIME_TO_EXT.get(mime_type)
    if not ext:
        raise ValueError(f"Unsupported file type: {mime_type}")

    name = item_id if index is None else f"{item_id}-{index}"
    path = f"trips/{trip_id}/{name}.{ext}"
    if not is_valid_path(path):
        raise ValueError(f"Invalid storage path: {path}")

    target = _resolve(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(file_bytes)
    print(f"[STORAGE] Uploaded {path} ({len(file_bytes)} bytes)")
    return path


def delete_file(path: Optional[str]) -> None:
    """Remove a stored file. Failures are logged, never raised."""
    if not path:
        return
    try:
        _resolve(path).unlink()
        print(f"[STORAGE] Deleted {path}")
    except FileNotFoundError:
        print(f"[STORAGE] Nothing to delete at {path}")
    except OSError as e:
        print(f"[STORAGE] Error deleting {path}: {e}")


def delete_trip_files(trip_id: str) -> None:
    """Remove every stored file of a trip."""
    if not trip_id:
        return
    folder = Path(STORAGE_DIR) / "trips" / trip_id
    if not folder.exists():
        return
    try:
        shutil.rmtree(folder)
        print(f"[STORAGE] Deleted all files for trip {trip_id}")
    except OSError as e:
        print(f"[STORAGE] Error deleting files for trip {trip_id}: {e}")


def read_file(path: str) -> bytes:
    return _resolve(path).read_bytes()


def _signature(path: str, expires: int) -> str:
    message = f"{path}:{expires}".encode("utf-8")
    return hmac.new(SIGNING_KEY.encode("utf-8"), message, hashlib.sha256).hexdigest()


def get_signed_url(path: str, expires_in: int = DEFAULT_URL_EXPIRY) -> str:
    """Time-limited download URL for a stored file."""
    expires = int(time.time()) + expires_in
    return (
        f"{STORAGE_BASE_URL.rstrip('/')}/{quote(path)}"
        f"?expires={expires}&signature={_signature(path, expires)}"
    )


def verify_signed_url(path: str, expires, signature: str) -> bool:
    """Check a signature produced by get_signed_url and that it has not expired."""
    try:
        expires = int(expires)
    except (TypeError, ValueError):
        return False
    if expires < time.time():
        return False
    return hmac.compare_digest(_signature(path, expires), signature or "")
