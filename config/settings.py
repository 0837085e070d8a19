"""
Settings Configuration
Validated configuration via Pydantic settings
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class NewsroomSettings(BaseSettings):
    """ENPS newsroom system"""
    api_base_url: str = Field(default="http://localhost:10456/ENPSWebApi", description="ENPS web API base URL")
    staff_user_id: Optional[str] = Field(default=None, description="Staff user id")
    domain_user_id: Optional[str] = Field(default=None, description="Domain user id, also used as domain name")
    password: Optional[str] = Field(default=None, description="Account password")
    dev_key: Optional[str] = Field(default=None, description="ENPS developer key")
    client_type: Optional[str] = Field(default=None, description="iClientType value")
    default_server_address: str = Field(default="", description="Proxy server address used when a station has none")
    timeout: float = Field(default=60.0, description="Per-call HTTP timeout (s)")

    class Config:
        env_prefix = "ENPS_"


class AnalysisSettings(BaseSettings):
    """Video Indexer analysis service"""
    api_url: str = Field(default="https://api.videoindexer.ai", description="Analysis API root")
    location: str = Field(default="trial", description="Account location")
    account_id: Optional[str] = Field(default=None, description="Account id")
    access_token: Optional[str] = Field(default=None, description="Account-level access token")
    callback_url: Optional[str] = Field(default=None, description="Public URL of the analysis callback endpoint")
    language: str = Field(default="English", description="Index language")
    timeout: float = Field(default=60.0, description="Per-call HTTP timeout (s)")

    class Config:
        env_prefix = "VIDEO_INDEXER_"


class LLMSettings(BaseSettings):
    """Reasoning service used by the interest resolver"""
    provider: str = Field(default="openai", description="LLM provider: openai, azure")
    model_name: Optional[str] = Field(default=None, description="Model or Azure deployment name")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    max_tokens: int = Field(default=4096, description="Maximum completion tokens")
    timeout: float = Field(default=60.0, description="Per-call HTTP timeout (s)")

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    base_url: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")
    azure_api_key: Optional[str] = Field(default=None, description="Azure OpenAI key")
    azure_endpoint: Optional[str] = Field(default=None, description="Azure OpenAI endpoint")
    azure_api_version: str = Field(default="2024-08-01-preview", description="Azure OpenAI API version")

    class Config:
        env_prefix = "LLM_"


class StoreSettings(BaseSettings):
    """Story record store"""
    backend: str = Field(default="sqlite", description="Store backend: memory, sqlite")
    sqlite_path: str = Field(default="./data/stories.db", description="SQLite database path")

    class Config:
        env_prefix = "STORE_"


class DeliverySettings(BaseSettings):
    """Feed delivery endpoint"""
    mode: str = Field(default="local", description="Transport: ftp, local")
    ftp_host: Optional[str] = Field(default=None, description="FTP host")
    ftp_port: int = Field(default=21, description="FTP port")
    ftp_username: Optional[str] = Field(default=None, description="FTP user")
    ftp_password: Optional[str] = Field(default=None, description="FTP password")
    ftp_use_tls: bool = Field(default=True, description="Use explicit FTPS")
    ftp_directory: str = Field(default="", description="Remote directory")
    local_directory: str = Field(default="./data/feed", description="Output directory for local delivery")
    timeout: float = Field(default=60.0, description="Transfer timeout (s)")

    class Config:
        env_prefix = "DELIVERY_"


class StationConfig(BaseModel):
    """One affiliate station"""
    server_address: str = ""
    database: str = "ENPS"
    base_path: str = "P_SYSTEM\\"


class PipelineSettings(BaseSettings):
    """Pipeline behaviour"""
    age_threshold_minutes: int = Field(default=10, description="Max video age (minutes) for normal eligibility")
    topic_window_days: int = Field(default=7, description="Trailing window for the station topic snapshot")
    resolver_concurrency: int = Field(default=5, description="Max in-flight reasoning-service calls")
    resolver_max_attempts: int = Field(default=5, description="Attempts per reasoning call when rate limited")
    resolver_base_delay: float = Field(default=2.0, description="First backoff delay (s), doubled per attempt")
    timezone: str = Field(default="America/New_York", description="Regional zone of feed timestamps")
    video_genre: str = Field(default="PKG", description="Genre tag written to the feed")
    stations_json: Optional[str] = Field(default=None, description="Inline JSON station registry")
    stations_file: Optional[str] = Field(default=None, description="Path to a JSON station registry")
    log_level: str = Field(default="INFO", description="Log level")

    class Config:
        env_prefix = "PIPELINE_"

    def load_stations(self) -> Dict[str, StationConfig]:
        """Station registry keyed by upper-case station id."""
        raw: Dict = {}
        if self.stations_json:
            raw = json.loads(self.stations_json)
        elif self.stations_file:
            path = Path(self.stations_file)
            if path.exists():
                raw = json.loads(path.read_text(encoding="utf-8"))
        stations = raw.get("Stations", raw.get("stations", raw)) if isinstance(raw, dict) else {}
        return {
            str(name).strip().upper(): StationConfig(**{_snake(k): v for k, v in dict(cfg or {}).items()})
            for name, cfg in stations.items()
            if str(name).strip()
        }


def _snake(key: str) -> str:
    mapping = {"ServerAddress": "server_address", "Database": "database", "Basepath": "base_path", "BasePath": "base_path"}
    return mapping.get(key, key)


class Settings(BaseSettings):
    """Root settings aggregating every group"""

    newsroom: NewsroomSettings = Field(default_factory=NewsroomSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings after reading the given .env file into the environment"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            newsroom=NewsroomSettings(),
            analysis=AnalysisSettings(),
            llm=LLMSettings(),
            store=StoreSettings(),
            delivery=DeliverySettings(),
            pipeline=PipelineSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton"""
    return Settings.load_from_env_file()


def get_newsroom_settings() -> NewsroomSettings:
    return get_settings().newsroom


def get_analysis_settings() -> AnalysisSettings:
    return get_settings().analysis


def get_llm_settings() -> LLMSettings:
    return get_settings().llm


def get_store_settings() -> StoreSettings:
    return get_settings().store


def get_delivery_settings() -> DeliverySettings:
    return get_settings().delivery


def get_pipeline_settings() -> PipelineSettings:
    return get_settings().pipeline
