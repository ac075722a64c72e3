"""Whole-file replacement that never leaves a half-written document behind."""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

import aiofiles
from loguru import logger

from stepwise.domain.ports.plan_repo_port import AtomicStoragePort


async def atomic_write(path: Path, content: str | bytes, suffix: str | None = None) -> None:
    """Stage `content` in a sibling temp file, fsync it, then swap it into place.

    Readers see either the previous document or the new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    data = content.encode("utf-8") if isinstance(content, str) else content

    fd, staged_name = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=".tmp_",
        suffix=suffix or path.suffix,
    )
    staged = Path(staged_name)

    try:
        async with aiofiles.open(fd, mode="wb", closefd=False) as f:
            await f.write(data)
            await f.flush()
        await asyncio.to_thread(os.fsync, fd)
        os.close(fd)
        fd = -1
        await asyncio.to_thread(staged.replace, path)
    except BaseException:
        if fd >= 0:
            os.close(fd)
        staged.unlink(missing_ok=True)
        raise
    logger.debug("Replaced {} ({} bytes)", path, len(data))


class FileAtomicStorage(AtomicStoragePort):
    """Local filesystem storage using temp-file-then-replace writes."""

    async def atomic_replace(self, path: Path, data: bytes) -> None:
        await atomic_write(path, data)

    async def read(self, path: Path) -> bytes | None:
        if not path.exists():
            return None
        async with aiofiles.open(path, mode="rb") as f:
            return await f.read()

    async def delete(self, path: Path) -> None:
        await asyncio.to_thread(path.unlink, missing_ok=True)
