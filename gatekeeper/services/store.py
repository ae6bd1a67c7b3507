from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import logging

from gatekeeper.models.census import RegistryState

logger = logging.getLogger(__name__)


class JsonRegistryStore:
    """Keeps the registry in one JSON file, replaced atomically on every save."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> RegistryState:
        if not self.path.exists():
            logger.info("registry_store.empty path=%s", self.path)
            return RegistryState()
        with self.path.open(encoding="utf-8") as f:
            raw = json.load(f)
        state = RegistryState.model_validate(raw or {})
        logger.info(
            "registry_store.loaded path=%s units=%d residents=%d",
            self.path,
            len(state.units),
            len(state.residents),
        )
        return state

    def save(self, state: RegistryState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.model_dump(mode="json")
        fd, tmp_name = tempfile.mkstemp(prefix=".registry-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
