"""Structured-output schemas for the reasoning service."""
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

SCHEMA_DIR = Path(__file__).parent


@lru_cache()
def load_schema(name: str) -> Dict[str, Any]:
    """Load `<name>.json` from the schema directory."""
    path = SCHEMA_DIR / f"{name}.json"
    return json.loads(path.read_text(encoding="utf-8"))


def interested_stations_response_format() -> Dict[str, Any]:
    return {"type": "json_schema", "json_schema": load_schema("interested_stations")}
