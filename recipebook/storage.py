from __future__ import annotations

from typing import Optional, Protocol

RECIPES_KEY = "@recipes"


class StorageUnavailable(Exception):
    """Raised by adapters when the backing store cannot be read or written."""


class StorageAdapter(Protocol):
    """Asynchronous key-value capability the recipe store persists through."""

    async def get(self, key: str) -> Optional[str]:
        """Return the text stored at ``key`` or ``None`` if it was never written."""

    async def set(self, key: str, value: str) -> None:
        """Overwrite the text stored at ``key``."""

    async def remove(self, key: str) -> None:
        """Delete ``key``. Removing a missing key is not an error."""


__all__ = ["RECIPES_KEY", "StorageAdapter", "StorageUnavailable"]
