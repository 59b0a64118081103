from __future__ import annotations

import asyncio
import logging
from pathlib import Path
import re

from docanalyzer.core.config import get_settings


logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _ensure_upload_dir() -> Path:
    # Local disk storage; paths are recorded on the document row.
    upload_dir = Path(get_settings().upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def build_storage_path(document_id: str, file_name: str) -> str:
    # Prefix with the document id so client-supplied names never collide.
    suffix = Path(file_name).suffix.lower()
    suffix = _UNSAFE_CHARS.sub("", suffix)[:16]
    return str(_ensure_upload_dir() / f"{document_id}{suffix}")


async def save_upload(document_id: str, file_name: str, body: bytes) -> str:
    storage_path = build_storage_path(document_id, file_name)
    await asyncio.to_thread(Path(storage_path).write_bytes, body)
    return storage_path


async def delete_upload(storage_path: str) -> None:
    try:
        await asyncio.to_thread(Path(storage_path).unlink)
    except FileNotFoundError:
        logger.info("upload_already_removed path=%s", storage_path)
