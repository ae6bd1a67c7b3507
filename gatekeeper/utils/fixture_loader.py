from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

_FIXTURE_DIR = Path(__file__).resolve().parent.parent.parent / "fixtures"


def load_json(path: Path) -> Dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def load_census_layout(path: Path | None = None) -> Dict[str, Any]:
    return load_json(path or _FIXTURE_DIR / "census.json")
