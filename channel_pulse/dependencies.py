from __future__ import annotations

from functools import lru_cache

from channel_pulse.config import AppSettings, load_settings
from channel_pulse.services.channel_download_service import ChannelDownloadService
from channel_pulse.services.rate_limiter import SlidingWindowRateLimiter
from channel_pulse.services.video_metadata import (
    DisabledTranscriptFetcher,
    TranscriptFetcher,
    YouTubeTranscriptApiFetcher,
)
from channel_pulse.services.youtube_web_client import InnertubeClientContext, YouTubeWebClient
from channel_pulse.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def build_channel_download_service(
    settings: AppSettings,
    *,
    telemetry: TelemetryClient | None = None,
) -> ChannelDownloadService:
    client = YouTubeWebClient(
        base_url=settings.youtube_base_url,
        user_agent=settings.user_agent,
        accept_language=settings.accept_language,
        timeout_seconds=settings.http_timeout_seconds,
        innertube_context=InnertubeClientContext(
            client_name=settings.innertube_client_name,
            client_version=settings.innertube_client_version,
            hl=settings.innertube_hl,
            gl=settings.innertube_gl,
        ),
    )
    transcripts: TranscriptFetcher
    if settings.transcript_enabled:
        transcripts = YouTubeTranscriptApiFetcher(languages=settings.transcript_language_codes)
    else:
        transcripts = DisabledTranscriptFetcher()
    return ChannelDownloadService(
        client,
        transcripts,
        telemetry=telemetry,
        max_continuation_rounds=settings.max_continuation_rounds,
        fetch_workers=settings.fetch_workers,
        stream_queue_size=settings.stream_queue_size,
    )


@lru_cache(maxsize=1)
def get_channel_download_service() -> ChannelDownloadService:
    return build_channel_download_service(get_settings(), telemetry=get_telemetry())


@lru_cache(maxsize=1)
def get_channel_rate_limiter() -> SlidingWindowRateLimiter | None:
    settings = get_settings()
    if not settings.channel_rate_limit_enabled:
        return None
    return SlidingWindowRateLimiter(
        max_requests=settings.channel_rate_limit_max_requests,
        window_seconds=settings.channel_rate_limit_window_seconds,
    )


def reset_cached_dependencies() -> None:
    get_channel_download_service.cache_clear()
    get_channel_rate_limiter.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
