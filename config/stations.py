"""Registry of affiliate stations known to the pipeline."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from utils.exceptions import ConfigurationError

from .settings import StationConfig


class StationRegistry:
    """Lookup of station configuration by station id (case-insensitive)."""

    def __init__(self, stations: Optional[Mapping[str, StationConfig]] = None) -> None:
        self._stations: Dict[str, StationConfig] = {
            normalize_station_id(name): cfg for name, cfg in dict(stations or {}).items()
        }

    @classmethod
    def from_names(cls, names: List[str]) -> "StationRegistry":
        return cls({name: StationConfig() for name in names})

    def station_ids(self) -> List[str]:
        return sorted(self._stations)

    def __contains__(self, station_id: object) -> bool:
        return normalize_station_id(str(station_id)) in self._stations

    def __len__(self) -> int:
        return len(self._stations)

    def get(self, station_id: str) -> StationConfig:
        key = normalize_station_id(station_id)
        station = self._stations.get(key)
        if station is None:
            raise ConfigurationError("Station not found", {"station": key})
        return station

    def lookup(self, station_id: str) -> StationConfig:
        """Station configuration, or the defaults for a station not in the registry."""
        station = self._stations.get(normalize_station_id(station_id))
        return station.model_copy() if station is not None else StationConfig()

    def server_address(self, station_id: str, default: str = "") -> str:
        key = normalize_station_id(station_id)
        station = self._stations.get(key)
        if station is None or not station.server_address:
            return default
        return station.server_address


def normalize_station_id(value: str) -> str:
    return str(value or "").strip().upper()
