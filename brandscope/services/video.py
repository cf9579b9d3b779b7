# =============================================================================
# Video Collaborators — URL Validation, Transcript, Comments, Statistics
# =============================================================================
#
# Thin I/O wrappers around YouTube. No state, no retries beyond what the
# underlying clients do; every failure is surfaced as FetchFailureError so
# the pipeline can abort before any agent runs.
#
#   validate_video_url() — pure, the only precondition check before fetching
#   YouTubeSource        — transcript (youtube-transcript-api) plus comments
#                          and statistics (YouTube Data API v3 over httpx)
#
# DESIGN DECISION: "zero comments" is not an error. Videos with comments
# disabled return an empty list, the same as videos nobody commented on.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, urlparse

import httpx
from youtube_transcript_api import YouTubeTranscriptApi

from brandscope.config import settings
from brandscope.errors import FetchFailureError
from brandscope.models.responses import VideoStats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# URL Validation
# ---------------------------------------------------------------------------

_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")

_YOUTUBE_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtube-nocookie.com",
    "www.youtube-nocookie.com",
}

# Path prefixes where the video ID is the next path segment
_PATH_PREFIXES = ("shorts", "embed", "live", "v")


@dataclass(frozen=True)
class UrlValidation:
    valid: bool
    video_id: str | None = None


def validate_video_url(url: str) -> UrlValidation:
    """
    Check that `url` points at a single YouTube video and extract its ID.

    Accepted forms:
        https://www.youtube.com/watch?v=<id>
        https://youtu.be/<id>
        https://www.youtube.com/shorts/<id>   (also /embed/, /live/, /v/)
    """
    if not url or not url.strip():
        return UrlValidation(valid=False)

    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"

    try:
        parsed = urlparse(candidate)
    except ValueError:
        return UrlValidation(valid=False)

    if parsed.scheme not in ("http", "https"):
        return UrlValidation(valid=False)

    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]
    video_id: str | None = None

    if host == "youtu.be":
        video_id = segments[0] if segments else None
    elif host in _YOUTUBE_HOSTS:
        if segments[:1] == ["watch"]:
            video_id = parse_qs(parsed.query).get("v", [None])[0]
        elif len(segments) >= 2 and segments[0] in _PATH_PREFIXES:
            video_id = segments[1]

    if video_id and _VIDEO_ID_RE.match(video_id):
        return UrlValidation(valid=True, video_id=video_id)
    return UrlValidation(valid=False)


# ---------------------------------------------------------------------------
# Source Protocol
# ---------------------------------------------------------------------------


class VideoSource(Protocol):
    """Everything the pipeline needs to know about a video."""

    async def fetch_transcript(self, video_id: str) -> str: ...

    async def fetch_comments(self, video_id: str) -> list[str]: ...

    async def fetch_statistics(self, video_id: str) -> VideoStats: ...


# ---------------------------------------------------------------------------
# YouTube Implementation
# ---------------------------------------------------------------------------


class YouTubeSource:
    """
    YouTube-backed VideoSource.

    Comments and statistics require a Data API key (YOUTUBE_API_KEY).
    Transcripts are read from the public caption tracks and need no key.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_comments: int | None = None,
        languages: list[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.youtube_api_key
        self._base_url = (base_url or settings.youtube_api_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout_seconds
        self._max_comments = max_comments or settings.max_comments
        self._languages = languages or settings.transcript_languages
        self._transport = transport

    # -------------------------------------------------------------------------
    # Transcript
    # -------------------------------------------------------------------------

    async def fetch_transcript(self, video_id: str) -> str:
        """
        Fetch the caption track for a video as one text blob.

        Raises:
            FetchFailureError: If no transcript is available or the request fails.
        """
        try:
            text = await asyncio.to_thread(self._fetch_transcript_sync, video_id)
        except Exception as e:
            raise FetchFailureError(
                f"Transcript unavailable for video {video_id}: {e}"
            ) from e

        if not text.strip():
            raise FetchFailureError(f"Transcript for video {video_id} is empty")

        logger.info("Fetched transcript for %s (%d chars)", video_id, len(text))
        return text

    def _fetch_transcript_sync(self, video_id: str) -> str:
        fetched = YouTubeTranscriptApi().fetch(video_id, languages=self._languages)
        return " ".join(
            snippet.text.replace("\n", " ").strip()
            for snippet in fetched
            if snippet.text.strip()
        )

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    async def fetch_comments(self, video_id: str) -> list[str]:
        """
        Fetch up to max_comments top-level comments, most relevant first.

        Returns an empty list when the video has no comments or has
        comments disabled.

        Raises:
            FetchFailureError: On any other API or network error.
        """
        params = {
            "part": "snippet",
            "videoId": video_id,
            "maxResults": min(self._max_comments, 100),
            "order": "relevance",
            "textFormat": "plainText",
        }

        comments: list[str] = []
        async with self._client() as client:
            while len(comments) < self._max_comments:
                response = await self._get(client, "commentThreads", params)
                if response is None:
                    logger.info("Comments disabled for video %s", video_id)
                    return []

                payload = response.json()
                for item in payload.get("items", []):
                    text = (
                        item.get("snippet", {})
                        .get("topLevelComment", {})
                        .get("snippet", {})
                        .get("textDisplay", "")
                    )
                    if text.strip():
                        comments.append(text.strip())

                page_token = payload.get("nextPageToken")
                if not page_token:
                    break
                params["pageToken"] = page_token

        logger.info("Fetched %d comments for %s", len(comments), video_id)
        return comments[: self._max_comments]

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def fetch_statistics(self, video_id: str) -> VideoStats:
        """
        Fetch view, like and comment counts.

        Hidden counts (e.g. likes disabled by the creator) are reported as 0.

        Raises:
            FetchFailureError: If the video doesn't exist or the API fails.
        """
        async with self._client() as client:
            response = await self._get(
                client, "videos", {"part": "statistics", "id": video_id},
            )

        items = response.json().get("items", []) if response is not None else []
        if not items:
            raise FetchFailureError(f"Video {video_id} not found")

        stats = items[0].get("statistics", {})
        return VideoStats(
            views=int(stats.get("viewCount", 0)),
            likes=int(stats.get("likeCount", 0)),
            comment_count=int(stats.get("commentCount", 0)),
        )

    # -------------------------------------------------------------------------
    # HTTP Helpers
    # -------------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            raise FetchFailureError(
                "No YouTube Data API key configured. Set YOUTUBE_API_KEY in .env"
            )
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        resource: str,
        params: dict,
    ) -> httpx.Response | None:
        """
        GET a Data API resource.

        Returns None for a 403 whose reason is "commentsDisabled".
        """
        try:
            response = await client.get(
                f"/{resource}", params={**params, "key": self._api_key},
            )
        except httpx.HTTPError as e:
            raise FetchFailureError(f"YouTube API request failed: {e}") from e

        if response.status_code == 403 and _error_reason(response) == "commentsDisabled":
            return None

        if response.is_error:
            raise FetchFailureError(
                f"YouTube API {resource} returned HTTP {response.status_code}: "
                f"{_error_reason(response) or response.reason_phrase}"
            )
        return response


def _error_reason(response: httpx.Response) -> str | None:
    """Extract error.errors[0].reason from a Data API error body."""
    try:
        errors = response.json().get("error", {}).get("errors", [])
    except ValueError:
        return None
    return errors[0].get("reason") if errors else None
