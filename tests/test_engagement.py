from __future__ import annotations

from conftest import FakeYouTubeSite, watch_page

from channel_pulse.services.channel_errors import UpstreamRequestError
from channel_pulse.services.engagement import EngagementEnricher
from channel_pulse.services.video_metadata import VideoRecord

VIDEO_ID = "abcdefghijk"
WATCH_URL = f"https://yt.test/watch?v={VIDEO_ID}"


def test_enrich_parses_like_and_comment_counts() -> None:
    site = FakeYouTubeSite(pages={WATCH_URL: watch_page(likes="12,345", comments="1,002")})
    record = VideoRecord(video_id=VIDEO_ID)

    enriched = EngagementEnricher(site).enrich(record)

    assert enriched is record
    assert record.like_count == 12345
    assert record.comment_count == 1002


def test_enrich_fetch_error_leaves_counts_unset() -> None:
    site = FakeYouTubeSite(pages={WATCH_URL: UpstreamRequestError("HTTP 429", url=WATCH_URL)})
    record = VideoRecord(video_id=VIDEO_ID)

    EngagementEnricher(site).enrich(record)

    assert record.like_count is None
    assert record.comment_count is None


def test_enrich_fetch_error_keeps_prior_values() -> None:
    site = FakeYouTubeSite(pages={WATCH_URL: UpstreamRequestError("timeout", url=WATCH_URL)})
    record = VideoRecord(video_id=VIDEO_ID, like_count=7, comment_count=3)

    EngagementEnricher(site).enrich(record)

    assert record.like_count == 7
    assert record.comment_count == 3


def test_enrich_patterns_match_independently() -> None:
    site = FakeYouTubeSite(pages={WATCH_URL: '"commentCount":{"simpleText":"88"}'})
    record = VideoRecord(video_id=VIDEO_ID)

    EngagementEnricher(site).enrich(record)

    assert record.like_count is None
    assert record.comment_count == 88


def test_enrich_unrecognized_markup_is_ignored() -> None:
    site = FakeYouTubeSite(pages={WATCH_URL: "<html><body>redesigned page</body></html>"})
    record = VideoRecord(video_id=VIDEO_ID, like_count=5)

    EngagementEnricher(site).enrich(record)

    assert record.like_count == 5
    assert record.comment_count is None


def test_enrich_ignores_counts_too_long_to_convert() -> None:
    oversized = '"defaultIcon":1,"label":"' + "9" * 5000 + ' likes"'
    html_text = oversized + '"commentCount":{"simpleText":"42"}'
    site = FakeYouTubeSite(pages={WATCH_URL: html_text})
    record = VideoRecord(video_id=VIDEO_ID, title="kept", like_count=3)

    enriched = EngagementEnricher(site).enrich(record)

    assert enriched.title == "kept"
    assert enriched.like_count == 3
    assert enriched.comment_count == 42
