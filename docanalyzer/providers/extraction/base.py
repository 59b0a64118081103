from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol


class ContentExtractor(Protocol):
    async def extract(self, storage_path: str, content_type: str) -> str:
        ...


class StoredTextExtractor:
    """Read stored uploads as text.

    Binary formats are decoded leniently; a format-aware extractor can be
    swapped in without touching the pipeline.
    """

    async def extract(self, storage_path: str, content_type: str) -> str:
        # Fail with FileNotFoundError if the upload vanished so the job is marked failed.
        raw = await asyncio.to_thread(Path(storage_path).read_bytes)
        text = raw.decode("utf-8", errors="ignore")
        if not text.strip():
            raise ValueError(f"No extractable text in {content_type or 'upload'}")
        return text


def get_extractor() -> ContentExtractor:
    return StoredTextExtractor()
