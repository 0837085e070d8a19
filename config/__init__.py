"""
Configuration Management Module
Settings groups and the station registry
"""
from .settings import (
    Settings,
    StationConfig,
    get_settings,
    get_newsroom_settings,
    get_analysis_settings,
    get_llm_settings,
    get_store_settings,
    get_delivery_settings,
    get_pipeline_settings,
)
from .stations import StationRegistry

__all__ = [
    "Settings",
    "StationConfig",
    "StationRegistry",
    "get_settings",
    "get_newsroom_settings",
    "get_analysis_settings",
    "get_llm_settings",
    "get_store_settings",
    "get_delivery_settings",
    "get_pipeline_settings",
]
