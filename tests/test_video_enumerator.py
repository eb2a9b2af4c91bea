from __future__ import annotations

import pytest
from conftest import CHANNEL_ID, FakeYouTubeSite, browse_page, video_id_for

from channel_pulse.services.channel_errors import UpstreamRequestError
from channel_pulse.services.video_enumerator import VIDEOS_TAB_PARAMS, VideoEnumerator


def _ids(start: int, count: int) -> list[str]:
    return [video_id_for(index) for index in range(start, start + count)]


def test_enumerate_follows_continuations_until_max_reached() -> None:
    site = FakeYouTubeSite(
        browse_responses=[
            browse_page(_ids(0, 3), continuation="page-2"),
            browse_page(_ids(3, 3), continuation="page-3"),
            browse_page(_ids(6, 3), continuation="page-4"),
        ]
    )

    video_ids = VideoEnumerator(site).enumerate(CHANNEL_ID, 7)

    assert video_ids == _ids(0, 7)
    assert site.browse_requests == [
        {"browseId": CHANNEL_ID, "params": VIDEOS_TAB_PARAMS},
        {"continuation": "page-2"},
        {"continuation": "page-3"},
    ]


def test_enumerate_stops_when_no_continuation_found() -> None:
    site = FakeYouTubeSite(browse_responses=[browse_page(_ids(0, 4))])

    assert VideoEnumerator(site).enumerate(CHANNEL_ID, 50) == _ids(0, 4)
    assert len(site.browse_requests) == 1


def test_enumerate_suppresses_duplicates_across_pages() -> None:
    site = FakeYouTubeSite(
        browse_responses=[
            browse_page(_ids(0, 3), continuation="next"),
            browse_page(_ids(2, 3)),
        ]
    )

    assert VideoEnumerator(site).enumerate(CHANNEL_ID, 10) == _ids(0, 5)


def test_enumerate_respects_continuation_round_limit() -> None:
    responses = [browse_page(_ids(0, 1), continuation="round-1")]
    for round_number in range(1, 20):
        responses.append(
            browse_page(_ids(round_number, 1), continuation=f"round-{round_number + 1}")
        )
    site = FakeYouTubeSite(browse_responses=responses)

    video_ids = VideoEnumerator(site, max_continuation_rounds=2).enumerate(CHANNEL_ID, 100)

    assert video_ids == _ids(0, 3)
    assert len(site.browse_requests) == 3


def test_enumerate_default_round_limit_is_ten() -> None:
    responses = [browse_page(_ids(0, 1), continuation="round-1")]
    for round_number in range(1, 30):
        responses.append(
            browse_page(_ids(round_number, 1), continuation=f"round-{round_number + 1}")
        )
    site = FakeYouTubeSite(browse_responses=responses)

    video_ids = VideoEnumerator(site).enumerate(CHANNEL_ID, 100)

    assert len(video_ids) == 11
    assert len(site.browse_requests) == 11


def test_enumerate_keeps_partial_list_when_continuation_fails() -> None:
    site = FakeYouTubeSite(
        browse_responses=[
            browse_page(_ids(0, 2), continuation="broken"),
            UpstreamRequestError("HTTP 500", url="https://yt.test/youtubei/v1/browse"),
        ]
    )

    assert VideoEnumerator(site).enumerate(CHANNEL_ID, 10) == _ids(0, 2)


def test_enumerate_initial_failure_propagates() -> None:
    site = FakeYouTubeSite(
        browse_responses=[UpstreamRequestError("HTTP 503", url="https://yt.test/browse")]
    )

    with pytest.raises(UpstreamRequestError, match="503"):
        VideoEnumerator(site).enumerate(CHANNEL_ID, 10)


def test_enumerate_truncates_excess_from_final_page() -> None:
    site = FakeYouTubeSite(browse_responses=[browse_page(_ids(0, 30))])

    assert VideoEnumerator(site).enumerate(CHANNEL_ID, 1) == _ids(0, 1)


def test_enumerate_empty_channel_returns_empty_list() -> None:
    site = FakeYouTubeSite(browse_responses=[{"contents": {"richGridRenderer": {"contents": []}}}])

    assert VideoEnumerator(site).enumerate(CHANNEL_ID, 10) == []
