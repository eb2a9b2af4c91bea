from __future__ import annotations

import math
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_MAX_VIDEOS = 10
MAX_VIDEOS_LIMIT = 100

_LEADING_INTEGER_PATTERN = re.compile(r"^\s*([+-]?)([0-9]+)")


def clamp_max_videos(value: Any) -> int:
    if isinstance(value, bool):
        parsed = DEFAULT_MAX_VIDEOS
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else DEFAULT_MAX_VIDEOS
    elif isinstance(value, str):
        parsed = _parse_leading_integer(value)
    else:
        parsed = DEFAULT_MAX_VIDEOS
    if parsed == 0:
        # A zero request is treated like a missing one.
        parsed = DEFAULT_MAX_VIDEOS
    return max(1, min(parsed, MAX_VIDEOS_LIMIT))


def _parse_leading_integer(value: str) -> int:
    # Same reading as JavaScript parseInt: "2.7" is 2, "12abc" is 12.
    matched = _LEADING_INTEGER_PATTERN.match(value)
    if matched is None:
        return DEFAULT_MAX_VIDEOS
    sign, digits = matched.group(1), matched.group(2).lstrip("0")
    if len(digits) > 6:
        # Far outside [1, 100]; long digit runs are not converted.
        return 1 if sign == "-" else MAX_VIDEOS_LIMIT
    return int(f"{sign}{digits or 0}")


class ChannelDownloadRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    channel_url: str | None = Field(
        default=None,
        alias="channelUrl",
        description="Channel URL, handle (`@name`) or canonical `UC...` id.",
    )
    max_videos: int = Field(
        default=DEFAULT_MAX_VIDEOS,
        alias="maxVideos",
        description=(
            "Videos to download. Strings are read up to their first non-digit; "
            "anything unreadable falls back to 10. Clamped to [1, 100]."
        ),
    )

    @field_validator("channel_url", mode="before")
    @classmethod
    def _normalize_channel_url(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("max_videos", mode="before")
    @classmethod
    def _clamp_max_videos(cls, value: Any) -> int:
        return clamp_max_videos(value)


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class VideoRecordPayload(_WireModel):
    video_id: str
    title: str
    description: str
    duration: int
    view_count: int
    like_count: int | None
    comment_count: int | None
    release_date: str
    video_url: str
    thumbnail_url: str
    transcript: str | None


class FailedVideoPayload(_WireModel):
    video_id: str
    error: str


class StatusEvent(_WireModel):
    type: Literal["status"] = "status"
    message: str
    progress: int = Field(ge=0, le=100)


class ErrorEvent(_WireModel):
    type: Literal["error"] = "error"
    message: str


class ResultEvent(_WireModel):
    type: Literal["result"] = "result"
    videos: list[VideoRecordPayload | FailedVideoPayload]


ProgressEvent = StatusEvent | ErrorEvent | ResultEvent


def event_to_wire(event: ProgressEvent) -> dict[str, Any]:
    return event.model_dump(mode="json", by_alias=True)
