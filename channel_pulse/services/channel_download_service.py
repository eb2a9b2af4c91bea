from __future__ import annotations

import contextvars
import logging
import math
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from time import perf_counter
from typing import Any, Literal, Protocol

from channel_pulse.models.channel_contracts import (
    ErrorEvent,
    FailedVideoPayload,
    ResultEvent,
    StatusEvent,
    VideoRecordPayload,
    clamp_max_videos,
    event_to_wire,
)
from channel_pulse.services.channel_errors import (
    ChannelResolutionError,
    EmptyChannelError,
    PipelineCancelledError,
    StreamClosedError,
)
from channel_pulse.services.channel_resolver import ChannelResolver
from channel_pulse.services.engagement import EngagementEnricher
from channel_pulse.services.progress_stream import CancellationToken, ProgressChannel
from channel_pulse.services.video_enumerator import (
    DEFAULT_MAX_CONTINUATION_ROUNDS,
    VideoEnumerator,
)
from channel_pulse.services.video_metadata import (
    FailedVideo,
    TranscriptFetcher,
    VideoEntry,
    VideoMetadataFetcher,
    VideoRecord,
)
from channel_pulse.telemetry import TelemetryClient

LOGGER = logging.getLogger("channel_pulse.youtube.download")

RunState = Literal["resolving", "listing", "fetching", "done", "failed"]

LISTING_PROGRESS = 5
VIDEOS_KNOWN_PROGRESS = 10
FETCH_PROGRESS_SPAN = 85
COMPLETE_PROGRESS = 100


class ChannelSiteClient(Protocol):
    @property
    def base_url(self) -> str:
        ...

    def with_cancellation(self, cancellation: CancellationToken) -> ChannelSiteClient:
        ...

    def watch_url(self, video_id: str) -> str:
        ...

    def fetch_text(self, url: str) -> str:
        ...

    def post_innertube(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        ...


class _RunReporter:
    def __init__(self, channel: ProgressChannel) -> None:
        self._channel = channel
        self._last_progress = 0
        self.state: RunState = "resolving"

    def transition(self, state: RunState) -> None:
        LOGGER.debug("channel download state from=%s to=%s", self.state, state)
        self.state = state

    def status(self, message: str, progress: int) -> None:
        self._last_progress = max(self._last_progress, min(progress, COMPLETE_PROGRESS))
        self._channel.send(event_to_wire(StatusEvent(message=message, progress=self._last_progress)))

    def error(self, message: str) -> None:
        self.transition("failed")
        try:
            self._channel.send(event_to_wire(ErrorEvent(message=message)))
        except StreamClosedError:
            LOGGER.info("channel download error not delivered; stream closed message=%s", message)

    def result(self, entries: Sequence[VideoEntry]) -> None:
        self.transition("done")
        self._channel.send(
            event_to_wire(ResultEvent(videos=[_entry_payload(entry) for entry in entries]))
        )


class ChannelDownloadService:
    def __init__(
        self,
        client: ChannelSiteClient,
        transcripts: TranscriptFetcher,
        *,
        telemetry: TelemetryClient | None = None,
        max_continuation_rounds: int = DEFAULT_MAX_CONTINUATION_ROUNDS,
        fetch_workers: int = 1,
        stream_queue_size: int = 16,
    ) -> None:
        self._client = client
        self._transcripts = transcripts
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._max_continuation_rounds = max(0, max_continuation_rounds)
        self._fetch_workers = max(1, fetch_workers)
        self._stream_queue_size = max(1, stream_queue_size)

    def start(self, channel_reference: str, max_videos: int) -> ProgressChannel:
        """Run the pipeline on a background thread and return its event stream.

        The worker inherits the caller's contextvars, so request-scoped log
        fields carry over to pipeline log lines.
        """
        channel = ProgressChannel(maxsize=self._stream_queue_size)
        context = contextvars.copy_context()
        worker = threading.Thread(
            target=context.run,
            args=(self.run, channel_reference, max_videos, channel),
            name="channel-pulse-download",
            daemon=True,
        )
        worker.start()
        return channel

    def run(self, channel_reference: str, max_videos: int, channel: ProgressChannel) -> None:
        reporter = _RunReporter(channel)
        limit = clamp_max_videos(max_videos)
        started_at = perf_counter()
        self._telemetry.emit(
            "channel.download.start",
            max_videos=limit,
            fetch_workers=self._fetch_workers,
        )
        try:
            entries = self._execute(channel_reference, limit, channel.cancellation, reporter)
        except (PipelineCancelledError, StreamClosedError):
            reporter.transition("failed")
            LOGGER.info("channel download cancelled reference=%s", channel_reference)
            self._telemetry.emit(
                "channel.download.cancelled",
                state=reporter.state,
                duration_ms=_elapsed_ms(started_at),
            )
        except (ChannelResolutionError, EmptyChannelError) as exc:
            LOGGER.info(
                "channel download failed reference=%s error_type=%s error=%s",
                channel_reference,
                type(exc).__name__,
                exc,
            )
            reporter.error(str(exc))
            self._emit_error_telemetry(exc, started_at)
        except Exception as exc:
            LOGGER.exception("channel download crashed reference=%s", channel_reference)
            reporter.error(_summarize_exception_message(exc))
            self._emit_error_telemetry(exc, started_at)
        else:
            failed_count = sum(1 for entry in entries if isinstance(entry, FailedVideo))
            self._telemetry.emit(
                "channel.download.finish",
                videos=len(entries),
                failed_videos=failed_count,
                duration_ms=_elapsed_ms(started_at),
            )
        finally:
            channel.finish()

    def _execute(
        self,
        channel_reference: str,
        max_videos: int,
        cancellation: CancellationToken,
        reporter: _RunReporter,
    ) -> list[VideoEntry]:
        client = self._client.with_cancellation(cancellation)

        reporter.status("Resolving channel...", 0)
        channel_id = ChannelResolver(client).resolve(channel_reference)

        reporter.transition("listing")
        reporter.status("Fetching video list...", LISTING_PROGRESS)
        enumerator = VideoEnumerator(client, max_continuation_rounds=self._max_continuation_rounds)
        video_ids = enumerator.enumerate(channel_id, max_videos)
        if not video_ids:
            raise EmptyChannelError("No videos found for this channel")

        total = len(video_ids)
        reporter.transition("fetching")
        reporter.status(
            f"Found {total} videos. Downloading metadata...",
            VIDEOS_KNOWN_PROGRESS,
        )
        metadata = VideoMetadataFetcher(client, self._transcripts, cancellation=cancellation)
        enricher = EngagementEnricher(client)
        if self._fetch_workers == 1:
            entries = self._fetch_sequential(video_ids, metadata, enricher, cancellation, reporter)
        else:
            entries = self._fetch_parallel(video_ids, metadata, enricher, cancellation, reporter)

        reporter.status("Done!", COMPLETE_PROGRESS)
        reporter.result(entries)
        return entries

    def _fetch_sequential(
        self,
        video_ids: list[str],
        metadata: VideoMetadataFetcher,
        enricher: EngagementEnricher,
        cancellation: CancellationToken,
        reporter: _RunReporter,
    ) -> list[VideoEntry]:
        total = len(video_ids)
        entries: list[VideoEntry] = []
        for index, video_id in enumerate(video_ids):
            reporter.status(
                f"Downloading video {index + 1}/{total}...",
                _video_progress(index, total),
            )
            entries.append(self._fetch_entry(video_id, metadata, enricher, cancellation))
        return entries

    def _fetch_parallel(
        self,
        video_ids: list[str],
        metadata: VideoMetadataFetcher,
        enricher: EngagementEnricher,
        cancellation: CancellationToken,
        reporter: _RunReporter,
    ) -> list[VideoEntry]:
        total = len(video_ids)
        # Slots are indexed by discovery order; completion order does not matter.
        slots: list[VideoEntry | None] = [None] * total
        reporter.status(f"Downloading video 1/{total}...", _video_progress(0, total))
        with ThreadPoolExecutor(
            max_workers=min(self._fetch_workers, total),
            thread_name_prefix="channel-pulse-fetch",
        ) as executor:
            futures = {
                executor.submit(
                    self._fetch_entry, video_id, metadata, enricher, cancellation
                ): index
                for index, video_id in enumerate(video_ids)
            }
            try:
                for completed, future in enumerate(as_completed(futures), start=1):
                    slots[futures[future]] = future.result()
                    if completed < total:
                        reporter.status(
                            f"Downloading video {completed + 1}/{total}...",
                            _video_progress(completed, total),
                        )
            except BaseException:
                cancellation.cancel()
                for future in futures:
                    future.cancel()
                raise

        entries: list[VideoEntry] = []
        for index, entry in enumerate(slots):
            assert entry is not None, f"missing entry for index {index}"
            entries.append(entry)
        return entries

    def _fetch_entry(
        self,
        video_id: str,
        metadata: VideoMetadataFetcher,
        enricher: EngagementEnricher,
        cancellation: CancellationToken,
    ) -> VideoEntry:
        cancellation.raise_if_cancelled()
        try:
            record = metadata.fetch_details(video_id)
            return enricher.enrich(record)
        except PipelineCancelledError:
            raise
        except Exception as exc:
            message = _summarize_exception_message(exc)
            LOGGER.warning(
                "channel download video failed video_id=%s error_type=%s error=%s",
                video_id,
                type(exc).__name__,
                message,
            )
            self._telemetry.emit(
                "channel.video.failed",
                video_id=video_id,
                error_type=type(exc).__name__,
            )
            return FailedVideo(video_id=video_id, error=message)

    def _emit_error_telemetry(self, exc: Exception, started_at: float) -> None:
        self._telemetry.emit(
            "channel.download.error",
            error_type=type(exc).__name__,
            duration_ms=_elapsed_ms(started_at),
        )


def _entry_payload(entry: VideoEntry) -> VideoRecordPayload | FailedVideoPayload:
    if isinstance(entry, FailedVideo):
        return FailedVideoPayload(video_id=entry.video_id, error=entry.error)
    return _record_payload(entry)


def _record_payload(record: VideoRecord) -> VideoRecordPayload:
    return VideoRecordPayload(
        video_id=record.video_id,
        title=record.title,
        description=record.description,
        duration=record.duration,
        view_count=record.view_count,
        like_count=record.like_count,
        comment_count=record.comment_count,
        release_date=record.release_date,
        video_url=record.video_url,
        thumbnail_url=record.thumbnail_url,
        transcript=record.transcript,
    )


def _video_progress(index: int, total: int) -> int:
    if total <= 0:
        return VIDEOS_KNOWN_PROGRESS
    # Half-up rounding, not banker's rounding.
    share = math.floor((index / total) * FETCH_PROGRESS_SPAN + 0.5)
    return VIDEOS_KNOWN_PROGRESS + share


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)


def _summarize_exception_message(exc: Exception, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."
