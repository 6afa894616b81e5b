"""Thin async client for the Google APIs used by the enrichment jobs.

- Vision: face and label detection on product thumbnails
- Translation: product titles ja -> en/zh/ko
- YouTube Data: related video search
- Indexing: URL_UPDATED notifications for product pages
- Analytics Data (GA4): page / traffic reports

API-key services use GOOGLE_API_KEY; Indexing and Analytics need an OAuth
access token for a service account that owns the property.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from catalog.config import Settings, get_settings
from catalog.core.retry import async_retry

logger = logging.getLogger(__name__)

VISION_URL = "https://vision.googleapis.com/v1/images:annotate"
TRANSLATE_URL = "https://translation.googleapis.com/language/translate/v2"
YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
INDEXING_URL = "https://indexing.googleapis.com/v3/urlNotifications:publish"
ANALYTICS_URL = "https://analyticsdata.googleapis.com/v1beta/properties/{property_id}:runReport"


@dataclass
class ImageAnalysis:
    face_count: int = 0
    labels: list[str] = field(default_factory=list)


@dataclass
class YoutubeVideo:
    id: str
    title: str
    thumbnail_url: str | None
    channel_title: str | None


@dataclass
class IndexingResult:
    success: bool
    requires_ownership_verification: bool = False
    error: str | None = None


class GoogleApiClient:
    """
    Async Google API client.

    Usage:
        async with GoogleApiClient() as client:
            analysis = await client.analyze_image(url)
    """

    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "GoogleApiClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_request_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("GoogleApiClient must be used as an async context manager")
        return self._client

    def _oauth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.google_oauth_access_token}"}

    @async_retry()
    async def analyze_image(self, image_url: str) -> ImageAnalysis:
        """Face count and top labels for an image URL."""
        response = await self.client.post(
            VISION_URL,
            params={"key": self.settings.google_api_key},
            json={
                "requests": [{
                    "image": {"source": {"imageUri": image_url}},
                    "features": [
                        {"type": "FACE_DETECTION", "maxResults": 10},
                        {"type": "LABEL_DETECTION", "maxResults": 10},
                    ],
                }],
            },
        )
        response.raise_for_status()
        annotations = (response.json().get("responses") or [{}])[0]
        return ImageAnalysis(
            face_count=len(annotations.get("faceAnnotations") or []),
            labels=[label["description"] for label in annotations.get("labelAnnotations") or []],
        )

    @async_retry()
    async def translate_text(self, text: str, target_lang: str, source_lang: str = "ja") -> str | None:
        response = await self.client.post(
            TRANSLATE_URL,
            params={"key": self.settings.google_api_key},
            json={"q": text, "target": target_lang, "source": source_lang, "format": "text"},
        )
        response.raise_for_status()
        translations = response.json().get("data", {}).get("translations") or []
        if not translations:
            return None
        return translations[0].get("translatedText")

    @async_retry()
    async def search_youtube_videos(self, query: str, max_results: int = 3) -> list[YoutubeVideo]:
        response = await self.client.get(
            YOUTUBE_SEARCH_URL,
            params={
                "part": "snippet",
                "type": "video",
                "q": query,
                "maxResults": max_results,
                "key": self.settings.google_api_key,
            },
        )
        response.raise_for_status()
        videos = []
        for item in response.json().get("items") or []:
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet") or {}
            thumbnails = snippet.get("thumbnails") or {}
            thumbnail = thumbnails.get("medium") or thumbnails.get("default") or {}
            videos.append(YoutubeVideo(
                id=video_id,
                title=snippet.get("title", ""),
                thumbnail_url=thumbnail.get("url"),
                channel_title=snippet.get("channelTitle"),
            ))
        return videos

    async def request_indexing(self, url: str, notification_type: str = "URL_UPDATED") -> IndexingResult:
        """
        Publish an Indexing API notification.

        A 403 mentioning ownership means the service account is not a
        verified owner of the site; that is reported, not raised.
        """
        try:
            response = await self._publish_indexing(url, notification_type)
        except httpx.HTTPStatusError as e:
            body = e.response.text
            if e.response.status_code == 403 and "ownership" in body.lower():
                return IndexingResult(success=False, requires_ownership_verification=True, error=body[:500])
            return IndexingResult(success=False, error=f"HTTP {e.response.status_code}: {body[:500]}")
        return IndexingResult(success=response.status_code == 200)

    @async_retry()
    async def _publish_indexing(self, url: str, notification_type: str) -> httpx.Response:
        response = await self.client.post(
            INDEXING_URL,
            headers=self._oauth_headers(),
            json={"url": url, "type": notification_type},
        )
        response.raise_for_status()
        return response

    @async_retry()
    async def get_analytics_report(
        self,
        property_id: str,
        dimensions: list[str],
        metrics: list[str],
        start_date: str,
        end_date: str,
    ) -> dict[str, Any] | None:
        response = await self.client.post(
            ANALYTICS_URL.format(property_id=property_id),
            headers=self._oauth_headers(),
            json={
                "dateRanges": [{"startDate": start_date, "endDate": end_date}],
                "dimensions": [{"name": d} for d in dimensions],
                "metrics": [{"name": m} for m in metrics],
                "limit": 100,
            },
        )
        response.raise_for_status()
        return response.json() or None
