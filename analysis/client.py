"""
Video Indexer Client
Submission and index retrieval against the video analysis service
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from config.settings import AnalysisSettings
from utils.exceptions import ConfigurationError, ParseFailure, UpstreamFailure, UpstreamRateLimited


logger = logging.getLogger(__name__)


class VideoIndexerClient:
    """Thin async client over the analysis service REST API."""

    service = "video_indexer"

    def __init__(
        self,
        settings: AnalysisSettings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def videos_url(self) -> str:
        if not self.settings.account_id:
            raise ConfigurationError("VIDEO_INDEXER_ACCOUNT_ID is not set")
        root = str(self.settings.api_url or "").rstrip("/")
        return f"{root}/{self.settings.location}/Accounts/{self.settings.account_id}/Videos"

    def _access_token(self) -> str:
        token = str(self.settings.access_token or "").strip()
        if not token:
            raise ConfigurationError("VIDEO_INDEXER_ACCESS_TOKEN is not set")
        return token

    def _check(self, response: httpx.Response, action: str) -> None:
        if response.status_code == 429:
            raise UpstreamRateLimited(f"{action} rate limited", service=self.service, status_code=429)
        if response.status_code != 200:
            raise UpstreamFailure(
                f"{action} returned {response.status_code}",
                service=self.service,
                status_code=response.status_code,
                body=response.text[:500],
            )

    async def upload(self, name: str, video_url: str, callback_url: Optional[str] = None) -> str:
        """
        Submit a video by URL.

        Args:
            name: video name, echoed back in the index document
            video_url: readable URL of the source object
            callback_url: endpoint notified on state changes

        Returns:
            The analysis-assigned video id
        """
        params = {
            "accessToken": self._access_token(),
            "name": name,
            "privacy": "Private",
            "videoUrl": video_url,
        }
        callback = callback_url or self.settings.callback_url
        if callback:
            params["callbackUrl"] = callback

        logger.info("analysis_upload name=%s callback=%s", name, bool(callback))
        try:
            response = await self._get_client().post(self.videos_url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"upload request failed: {exc}", service=self.service) from exc
        self._check(response, "upload")

        try:
            video_id = str(response.json().get("id") or "").strip()
        except ValueError as exc:
            raise ParseFailure("upload response is not JSON") from exc
        if not video_id:
            raise ParseFailure("upload response carries no video id")
        logger.info("analysis_uploaded name=%s video_id=%s", name, video_id)
        return video_id

    async def get_index(self, video_id: str) -> Dict[str, Any]:
        """Fetch the full analysis document of a processed video."""
        params = {"accessToken": self._access_token(), "language": self.settings.language}
        try:
            response = await self._get_client().get(f"{self.videos_url}/{video_id}/Index", params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"index request failed: {exc}", service=self.service) from exc
        self._check(response, "get_index")

        try:
            document = json.loads(response.text)
        except ValueError as exc:
            raise ParseFailure("index document is not JSON", {"video_id": video_id}) from exc
        if not isinstance(document, dict):
            raise ParseFailure("index document is not an object", {"video_id": video_id})
        logger.debug("analysis_index video_id=%s bytes=%d", video_id, len(response.text))
        return document
