"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    storage_dir: Path
    registry_file: Path
    census_file: Path
    verification_window_seconds: float = 3600.0
    deregister_eviction_seconds: float = 3600.0
    gateway_base_url: Optional[str] = None
    gateway_token: Optional[str] = None
    gateway_timeout_seconds: float = 10.0
    community_name: str = "the community"
    fallback_name: str = "neighbor"

    @classmethod
    def from_env(cls) -> "Settings":
        storage_dir = Path(os.getenv("STORAGE_DIR", "."))
        registry_file = os.getenv("REGISTRY_FILE")
        census_file = os.getenv("CENSUS_FILE")
        return cls(
            storage_dir=storage_dir,
            registry_file=Path(registry_file) if registry_file else storage_dir / "db.json",
            census_file=Path(census_file) if census_file else _ROOT / "fixtures" / "census.json",
            verification_window_seconds=float(os.getenv("VERIFICATION_WINDOW_SECONDS", "3600")),
            deregister_eviction_seconds=float(os.getenv("DEREGISTER_EVICTION_SECONDS", "3600")),
            gateway_base_url=os.getenv("GATEWAY_BASE_URL") or None,
            gateway_token=os.getenv("GATEWAY_TOKEN") or None,
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10")),
            community_name=os.getenv("COMMUNITY_NAME", "the community"),
            fallback_name=os.getenv("FALLBACK_NAME", "neighbor"),
        )
