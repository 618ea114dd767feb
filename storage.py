"""
Local-disk storage for uploaded files.

Files land in config.UPLOAD_DIR (or a subfolder) under a server-assigned
name `<field>-<epoch ms>-<random><ext>`. Writing is chunked and stops as
soon as the size ceiling is crossed, removing the partial file.
"""
import logging
import os
import random
import time
from typing import BinaryIO, Optional, Tuple

import config
from errors import ValidationError

logger = logging.getLogger("storage")

CHUNK_SIZE = 1024 * 1024


def upload_dir(subfolder: Optional[str] = None) -> str:
    path = os.path.join(config.UPLOAD_DIR, subfolder) if subfolder else config.UPLOAD_DIR
    os.makedirs(path, exist_ok=True)
    return path


def server_filename(field: str, original_name: Optional[str]) -> str:
    ext = os.path.splitext(os.path.basename(original_name or ""))[1].lower()
    return f"{field}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


def megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):g}MB"


def store_stream(stream: BinaryIO, directory: str, filename: str, max_size: int) -> Tuple[str, int]:
    """Copy `stream` to directory/filename; returns (path, size)."""
    path = os.path.join(directory, filename)
    size = 0
    with open(path, "wb") as out:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > max_size:
                break
            out.write(chunk)
    if size > max_size:
        remove_file(path)
        raise ValidationError(f"File too large. Maximum size is {megabytes(max_size)}.")
    return path, size


def remove_file(path: str) -> bool:
    """Best-effort delete; failures are logged, never raised."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.error("Error deleting file %s: %s", path, exc)
        return False
