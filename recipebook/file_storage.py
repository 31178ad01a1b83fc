from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from .storage import StorageAdapter, StorageUnavailable

logger = logging.getLogger(__name__)


class FileStorageAdapter(StorageAdapter):
    """Device-local key-value storage keeping one UTF-8 file per key."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._unlink, key)

    def _path_for(self, key: str) -> Path:
        # "@recipes" -> "%40recipes"; keeps distinct keys on distinct files.
        return self._directory / quote(key, safe="")

    def _read(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageUnavailable(f"Could not read '{key}' from {path}: {exc}") from exc

    def _write(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageUnavailable(f"Could not write '{key}' to {path}: {exc}") from exc

        logger.debug("Wrote %d characters to %s", len(value), path)

    def _unlink(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Could not remove '{key}' at {path}: {exc}") from exc


__all__ = ["FileStorageAdapter"]
