from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Protocol, cast

from youtube_transcript_api import NoTranscriptFound, YouTubeTranscriptApi

from channel_pulse.services.progress_stream import CancellationToken

LOGGER = logging.getLogger("channel_pulse.youtube.metadata")

FALLBACK_THUMBNAIL_TEMPLATE = "https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"
WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


@dataclass
class VideoRecord:
    video_id: str
    title: str = ""
    description: str = ""
    duration: int = 0
    view_count: int = 0
    like_count: int | None = None
    comment_count: int | None = None
    release_date: str = ""
    video_url: str = ""
    thumbnail_url: str = ""
    transcript: str | None = None


@dataclass(frozen=True)
class FailedVideo:
    video_id: str
    error: str


VideoEntry = VideoRecord | FailedVideo


class PlayerClient(Protocol):
    def post_innertube(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        ...


class TranscriptFetcher(Protocol):
    def fetch(self, video_id: str) -> str | None:
        ...


class YouTubeTranscriptApiFetcher:
    def __init__(self, *, languages: tuple[str, ...] = ("en",)) -> None:
        self._languages = languages

    def fetch(self, video_id: str) -> str | None:
        transcript_list = YouTubeTranscriptApi().list(video_id)
        try:
            transcript = transcript_list.find_transcript(self._languages)
        except NoTranscriptFound:
            transcript = next(iter(transcript_list), None)
            if transcript is None:
                return None
        text = " ".join(snippet.text for snippet in transcript.fetch())
        return text or None


class DisabledTranscriptFetcher:
    def fetch(self, video_id: str) -> str | None:
        _ = video_id
        return None


class VideoMetadataFetcher:
    def __init__(
        self,
        client: PlayerClient,
        transcripts: TranscriptFetcher,
        *,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self._client = client
        self._transcripts = transcripts
        self._cancellation = cancellation

    def fetch_details(self, video_id: str) -> VideoRecord:
        response = self._client.post_innertube("player", {"videoId": video_id})
        details = _as_dict(response.get("videoDetails"))
        microformat = _as_dict(
            _as_dict(response.get("microformat")).get("playerMicroformatRenderer")
        )

        return VideoRecord(
            video_id=video_id,
            title=_coerce_text(details.get("title")),
            description=_coerce_text(details.get("shortDescription")),
            duration=_coerce_non_negative_int(details.get("lengthSeconds")),
            view_count=_coerce_non_negative_int(details.get("viewCount")),
            release_date=(
                _coerce_text(microformat.get("publishDate"))
                or _coerce_text(microformat.get("uploadDate"))
            ),
            video_url=WATCH_URL_TEMPLATE.format(video_id=video_id),
            thumbnail_url=_select_thumbnail_url(details)
            or FALLBACK_THUMBNAIL_TEMPLATE.format(video_id=video_id),
            transcript=self._fetch_transcript(video_id),
        )

    def _fetch_transcript(self, video_id: str) -> str | None:
        if self._cancellation is not None:
            self._cancellation.raise_if_cancelled()
        try:
            return self._transcripts.fetch(video_id)
        except Exception as exc:
            LOGGER.debug(
                "youtube transcript unavailable video_id=%s error_type=%s error=%s",
                video_id,
                type(exc).__name__,
                exc,
            )
            return None


def _select_thumbnail_url(details: dict[str, Any]) -> str | None:
    thumbnails = _as_list(_as_dict(details.get("thumbnail")).get("thumbnails"))
    best_url: str | None = None
    best_area = -1
    for raw_thumbnail in thumbnails:
        thumbnail = _as_dict(raw_thumbnail)
        url = thumbnail.get("url")
        if not isinstance(url, str) or not url.strip():
            continue
        area = _coerce_non_negative_int(thumbnail.get("width")) * _coerce_non_negative_int(
            thumbnail.get("height")
        )
        # Later entries win ties; the list is ordered smallest to largest.
        if area >= best_area:
            best_area = area
            best_url = url
    return best_url


def _coerce_text(raw_value: object) -> str:
    if isinstance(raw_value, str):
        return raw_value
    return ""


def _coerce_non_negative_int(raw_value: object) -> int:
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(0, raw_value)
    if isinstance(raw_value, float):
        if not math.isfinite(raw_value):
            return 0
        return max(0, int(raw_value))
    if isinstance(raw_value, str):
        try:
            return max(0, int(raw_value.strip()))
        except ValueError:
            return 0
    return 0


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
