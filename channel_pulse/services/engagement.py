from __future__ import annotations

import logging
import re
from typing import Protocol

from channel_pulse.services.channel_errors import PipelineCancelledError
from channel_pulse.services.video_metadata import VideoRecord

LOGGER = logging.getLogger("channel_pulse.youtube.engagement")

# Watch-page markup drifts often; both patterns are expected to stop matching at some point.
LIKES_PATTERN = re.compile(r'"defaultIcon".*?"label":"([\d,]+) likes"')
COMMENTS_PATTERN = re.compile(r'"commentCount".*?"simpleText":"([\d,]+)"')


class WatchPageFetcher(Protocol):
    def watch_url(self, video_id: str) -> str:
        ...

    def fetch_text(self, url: str) -> str:
        ...


class EngagementEnricher:
    def __init__(self, fetcher: WatchPageFetcher) -> None:
        self._fetcher = fetcher

    def enrich(self, record: VideoRecord) -> VideoRecord:
        try:
            html_text = self._fetcher.fetch_text(self._fetcher.watch_url(record.video_id))
        except PipelineCancelledError:
            raise
        except Exception as exc:
            LOGGER.debug(
                "youtube engagement fetch failed video_id=%s error=%s",
                record.video_id,
                exc,
            )
            return record

        like_count = _match_count(LIKES_PATTERN, html_text)
        if like_count is not None:
            record.like_count = like_count
        comment_count = _match_count(COMMENTS_PATTERN, html_text)
        if comment_count is not None:
            record.comment_count = comment_count
        return record


def _match_count(pattern: re.Pattern[str], html_text: str) -> int | None:
    matched = pattern.search(html_text)
    if matched is None:
        return None
    digits = matched.group(1).replace(",", "")
    if not digits:
        return None
    try:
        return int(digits)
    except ValueError:
        # Exceeds the interpreter's integer string conversion limit.
        return None
