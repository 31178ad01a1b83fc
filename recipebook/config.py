from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

PLATFORM_DEVICE = "device"
PLATFORM_WEB = "web"
PLATFORMS = (PLATFORM_DEVICE, PLATFORM_WEB)

DEFAULT_DATA_DIR = Path("~/.recipebook")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read once at startup."""

    platform: str = PLATFORM_DEVICE
    data_dir: Path = DEFAULT_DATA_DIR
    gcp_project: Optional[str] = None
    storage_collection: str = "recipebook"
    log_level: str = "INFO"
    secret_key: str = "development-secret-change-me"

    def __post_init__(self) -> None:
        if self.platform not in PLATFORMS:
            raise ValueError(
                f"Unknown platform {self.platform!r}; expected one of {', '.join(PLATFORMS)}."
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""

        env = os.environ if environ is None else environ
        return cls(
            platform=env.get("RECIPEBOOK_PLATFORM", PLATFORM_DEVICE).strip().lower(),
            data_dir=Path(env.get("RECIPEBOOK_DATA_DIR", str(DEFAULT_DATA_DIR))).expanduser(),
            gcp_project=env.get("GCP_PROJECT") or None,
            storage_collection=env.get("RECIPES_COLLECTION", "recipebook"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            secret_key=env.get("FLASK_SECRET_KEY", "development-secret-change-me"),
        )


__all__ = ["PLATFORMS", "PLATFORM_DEVICE", "PLATFORM_WEB", "Settings"]
