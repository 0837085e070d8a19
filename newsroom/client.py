"""
ENPS Client
Session, search and basic-content calls against the newsroom system
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from config.settings import NewsroomSettings
from core import BasicContent, NewsroomAsset
from core.timestamps import try_parse_newsroom_timestamp
from utils.exceptions import AuthFailure, NotEligible, UpstreamFailure


logger = logging.getLogger(__name__)

SESSION_HEADER = "X-ENPS-TOKEN"
STORY_TYPE = 3
PACKAGE_SUFFIX = "PKG"
DEFAULT_DATABASE = "ENPS"
DEFAULT_BASE_PATH = "P_SYSTEM\\"
_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


class EnpsClient:
    """
    Newsroom (ENPS) web API client

    One instance holds one session; call login() before search().
    """

    service = "enps"

    def __init__(
        self,
        settings: NewsroomSettings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.base_url = str(settings.api_base_url or "").rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None
        self.session_id: Optional[str] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.timeout))
        return self._client

    async def __aenter__(self) -> "EnpsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def login(self) -> str:
        """Open a session. Raises AuthFailure on any non-success response."""
        form = {
            "staffUserId": self.settings.staff_user_id or "",
            "domainuserId": self.settings.domain_user_id or "",
            "password": self.settings.password or "",
            "domainName": self.settings.domain_user_id or "",
            "devKey": self.settings.dev_key or "",
            "iClientType": self.settings.client_type or "",
        }
        logger.info("enps_login base_url=%s user=%s", self.base_url, form["staffUserId"])
        try:
            response = await self._get_client().post(f"{self.base_url}/Logon", data=form)
        except httpx.HTTPError as exc:
            raise AuthFailure(f"ENPS login request failed: {exc}") from exc

        if not response.is_success:
            raise AuthFailure("ENPS login rejected", {"status_code": response.status_code})

        try:
            session_id = str(response.json().get("SessionID") or "").strip()
        except ValueError as exc:
            raise AuthFailure("ENPS login returned a non-JSON body") from exc
        if not session_id:
            raise AuthFailure("ENPS login returned no SessionID")

        self.session_id = session_id
        return session_id

    def _headers(self) -> Dict[str, str]:
        if not self.session_id:
            raise AuthFailure("ENPS session not established; call login() first")
        return {SESSION_HEADER: self.session_id}

    async def _post_json(self, endpoint: str, body: Any) -> Any:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self._get_client().post(url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"ENPS {endpoint} request failed: {exc}", service=self.service) from exc
        if not response.is_success:
            raise UpstreamFailure(
                f"ENPS {endpoint} returned {response.status_code}",
                service=self.service,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFailure(f"ENPS {endpoint} returned a non-JSON body", service=self.service) from exc

    async def search(
        self,
        video_name: str,
        server_address: str = "",
        *,
        database: str = DEFAULT_DATABASE,
        base_path: str = DEFAULT_BASE_PATH,
    ) -> NewsroomAsset:
        """
        Find the newsroom asset for a video.

        Args:
            video_name: proxy file name of the video
            server_address: station proxy server address prefixed to the name
            database: newsroom database searched
            base_path: location searched within the database

        Returns:
            NewsroomAsset; `is_story_and_package` carries the process signal

        Raises:
            NotEligible: no matching asset
            UpstreamFailure: non-success response
        """
        body = {
            "Database": database or DEFAULT_DATABASE,
            "ExactMatch": True,
            "MaxRows": 200,
            "NOMContentDates": {"All": True},
            "NOMContentTypes": {"Scripts": True},
            "NOMLocations": [
                {
                    "BasePath": base_path or DEFAULT_BASE_PATH,
                    "SearchArchives": False,
                    "SearchTrash": False,
                    "SearchWIP": True,
                }
            ],
            "QueryTerms": f"{server_address}{video_name}",
            "SortByRank": False,
            "SearchWires": False,
            "zFields": [],
        }
        payload = await self._post_json("Search", body)
        results = payload.get("SearchResults") if isinstance(payload, dict) else None
        if not results:
            raise NotEligible("No newsroom asset found", {"video_name": video_name})

        asset = parse_search_properties(results[0].get("ObjectProperties") or [])
        logger.info(
            "enps_search video=%s guid=%s type=%s slug=%s suffix=%s",
            video_name,
            asset.guid,
            asset.asset_type,
            asset.slug,
            asset.title_suffix,
        )
        return asset

    async def get_basic_content(self, asset: NewsroomAsset) -> BasicContent:
        """Fetch overview text, contributor, force-share flag and media-object markup."""
        body = [
            {
                "database": "ENPS",
                "path": asset.path,
                "guid": asset.guid,
                "hitHighlightTerm": "",
                "returnTextLevel": "FULL",
            }
        ]
        payload = await self._post_json("BasicContent", body)
        if not isinstance(payload, list) or not payload:
            raise UpstreamFailure("ENPS BasicContent returned no content", service=self.service)
        first = payload[0] if isinstance(payload[0], dict) else {}
        return parse_basic_content_properties(first.get("ObjectProperties") or [])


def parse_search_properties(properties: List[Dict[str, Any]]) -> NewsroomAsset:
    asset = NewsroomAsset()
    for prop in properties:
        name = str(prop.get("FieldName") or "").strip().lower()
        value = str(prop.get("FieldValue") or "").strip()
        if name == "guid":
            asset.guid = value
        elif name == "type":
            try:
                asset.asset_type = int(value)
            except ValueError:
                asset.asset_type = None
        elif name == "modtime":
            asset.mod_time = try_parse_newsroom_timestamp(value)
        elif name == "path":
            asset.path = value
        elif name == "title":
            asset.title = value
            asset.slug, asset.title_suffix = split_title(value)
    return asset


def parse_basic_content_properties(properties: List[Dict[str, Any]]) -> BasicContent:
    content = BasicContent()
    for prop in properties:
        name = str(prop.get("FieldName") or "").strip().lower()
        value = prop.get("FieldValue")
        if name == "text":
            content.text = str(value or "")
        elif name == "textcommands":
            content.media_object = _first_value(value)
        elif name == "creator":
            content.creator = str(value or "")
        elif name == "modtime":
            content.mod_time = str(value or "")
        elif name == "hearstshare":
            content.force_share = str(value or "").strip().lower() in _TRUE_VALUES
    return content


def split_title(title: str) -> tuple[str, str]:
    """'Storm-PKG' -> ('Storm', 'PKG'). A title without a suffix keeps its full text as slug."""
    text = str(title or "").strip()
    slug, sep, suffix = text.rpartition("-")
    if not sep:
        return text, ""
    return slug.strip(), suffix.strip()


def _first_value(value: Any) -> str:
    if isinstance(value, dict):
        for item in value.values():
            return str(item or "")
        return ""
    if isinstance(value, list):
        return str(value[0]) if value else ""
    return str(value or "")
