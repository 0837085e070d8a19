from __future__ import annotations

import json
from pathlib import Path

import pytest

from config import StationRegistry
from config.settings import PipelineSettings, Settings
from utils.exceptions import ConfigurationError, StoryPipelineError


REGISTRY = {
    "Stations": {
        "wesh": {"ServerAddress": "\\\\wesh-proxy\\", "Database": "ENPS", "Basepath": "P_SYSTEM\\"},
        "WMUR": {"ServerAddress": "\\\\wmur-proxy\\"},
        "KCRA": {},
    }
}


def test_load_stations_from_inline_json() -> None:
    settings = PipelineSettings(stations_json=json.dumps(REGISTRY))
    stations = settings.load_stations()

    assert sorted(stations) == ["KCRA", "WESH", "WMUR"]
    assert stations["WESH"].server_address == "\\\\wesh-proxy\\"
    assert stations["KCRA"].database == "ENPS"


def test_load_stations_from_file(tmp_path: Path) -> None:
    path = tmp_path / "stations.json"
    path.write_text(json.dumps(REGISTRY["Stations"]), encoding="utf-8")

    stations = PipelineSettings(stations_file=str(path)).load_stations()
    assert sorted(stations) == ["KCRA", "WESH", "WMUR"]


def test_pipeline_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("PIPELINE_AGE_THRESHOLD_MINUTES", "15")
    monkeypatch.setenv("PIPELINE_RESOLVER_CONCURRENCY", "3")

    settings = PipelineSettings()
    assert settings.age_threshold_minutes == 15
    assert settings.resolver_concurrency == 3
    assert settings.resolver_max_attempts == 5
    assert settings.timezone == "America/New_York"


def test_settings_groups_have_defaults() -> None:
    settings = Settings()
    assert settings.analysis.api_url == "https://api.videoindexer.ai"
    assert settings.delivery.mode in {"local", "ftp"}
    assert settings.llm.provider in {"openai", "azure"}


def test_station_registry_lookup() -> None:
    registry = StationRegistry(PipelineSettings(stations_json=json.dumps(REGISTRY)).load_stations())

    assert "wesh" in registry
    assert len(registry) == 3
    assert registry.station_ids() == ["KCRA", "WESH", "WMUR"]
    assert registry.server_address("wmur") == "\\\\wmur-proxy\\"
    assert registry.server_address("KCRA", default="\\\\shared\\") == "\\\\shared\\"
    assert registry.server_address("NOPE", default="x") == "x"

    with pytest.raises(ConfigurationError) as info:
        registry.get("NOPE")
    assert isinstance(info.value, StoryPipelineError)
    assert "NOPE" in str(info.value)


def test_station_registry_lookup_defaults() -> None:
    stations = {"WESH": {"ServerAddress": "\\\\wesh\\", "Database": "WESHDB", "Basepath": "WESH\\"}}
    registry = StationRegistry(PipelineSettings(stations_json=json.dumps(stations)).load_stations())

    wesh = registry.lookup("wesh")
    assert wesh.database == "WESHDB"
    assert wesh.base_path == "WESH\\"

    unknown = registry.lookup("NOPE")
    assert unknown.server_address == ""
    assert unknown.database == "ENPS"
