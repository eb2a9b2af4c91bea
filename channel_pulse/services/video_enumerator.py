from __future__ import annotations

import logging
from typing import Any, Protocol

from channel_pulse.services.channel_errors import UpstreamRequestError
from channel_pulse.services.document_search import collect_video_ids, find_continuation_token

LOGGER = logging.getLogger("channel_pulse.youtube.enumerator")

# Browse params selecting a channel's "Videos" tab.
VIDEOS_TAB_PARAMS = "EgZ2aWRlb3PyBgQKAjoA"
DEFAULT_MAX_CONTINUATION_ROUNDS = 10


class BrowseClient(Protocol):
    def post_innertube(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        ...


class VideoEnumerator:
    def __init__(
        self,
        client: BrowseClient,
        *,
        max_continuation_rounds: int = DEFAULT_MAX_CONTINUATION_ROUNDS,
    ) -> None:
        self._client = client
        self._max_continuation_rounds = max(0, max_continuation_rounds)

    def enumerate(self, channel_id: str, max_videos: int) -> list[str]:
        if max_videos < 1:
            return []

        video_ids: list[str] = []
        document = self._client.post_innertube(
            "browse",
            {"browseId": channel_id, "params": VIDEOS_TAB_PARAMS},
        )
        collect_video_ids(document, video_ids, limit=max_videos)

        rounds = 0
        while len(video_ids) < max_videos:
            if rounds >= self._max_continuation_rounds:
                LOGGER.info(
                    "youtube browse pagination round_limit channel_id=%s rounds=%s collected=%s",
                    channel_id,
                    rounds,
                    len(video_ids),
                )
                break
            rounds += 1
            token = find_continuation_token(document)
            if token is None:
                break
            try:
                document = self._client.post_innertube("browse", {"continuation": token})
            except UpstreamRequestError as exc:
                LOGGER.warning(
                    "youtube browse continuation failed channel_id=%s round=%s collected=%s error=%s",
                    channel_id,
                    rounds,
                    len(video_ids),
                    exc,
                )
                break
            collect_video_ids(document, video_ids, limit=max_videos)

        LOGGER.info(
            "youtube browse complete channel_id=%s videos=%s continuation_rounds=%s",
            channel_id,
            min(len(video_ids), max_videos),
            rounds,
        )
        return video_ids[:max_videos]
