from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from channel_pulse.dependencies import reset_cached_dependencies
from channel_pulse.main import create_app
from channel_pulse.services.channel_errors import UpstreamRequestError
from channel_pulse.services.progress_stream import CancellationToken

CHANNEL_ID = "UCabcdefghijklmnopqrstuv"
CHANNEL_URL = "https://yt.test/@testchannel"

Response = dict[str, Any] | Exception
PlayerHandler = Callable[[str], dict[str, Any]]


class FakeYouTubeSite:
    """In-memory stand-in for the site and its internal JSON API."""

    base_url = "https://yt.test"

    def __init__(
        self,
        *,
        pages: dict[str, str | Exception] | None = None,
        browse_responses: list[Response] | None = None,
        players: dict[str, Response] | None = None,
        player_handler: PlayerHandler | None = None,
    ) -> None:
        self.pages = pages or {}
        self.browse_responses = list(browse_responses or [])
        self.players = players or {}
        self.player_handler = player_handler
        self.browse_requests: list[dict[str, Any]] = []
        self.fetched_urls: list[str] = []
        self.cancellation: CancellationToken | None = None

    def with_cancellation(self, cancellation: CancellationToken) -> FakeYouTubeSite:
        self.cancellation = cancellation
        return self

    def watch_url(self, video_id: str) -> str:
        return f"{self.base_url}/watch?v={video_id}"

    def fetch_text(self, url: str) -> str:
        self._check_cancelled()
        self.fetched_urls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise UpstreamRequestError(f"HTTP 404 from {url}", url=url, status_code=404)
        if isinstance(page, Exception):
            raise page
        return page

    def post_innertube(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        self._check_cancelled()
        if endpoint == "browse":
            self.browse_requests.append(body)
            if not self.browse_responses:
                return {}
            response = self.browse_responses.pop(0)
        elif endpoint == "player":
            video_id = body["videoId"]
            if self.player_handler is not None:
                return self.player_handler(video_id)
            response = self.players.get(video_id, {})
        else:
            raise AssertionError(f"unexpected endpoint {endpoint}")
        if isinstance(response, Exception):
            raise response
        return response

    def _check_cancelled(self) -> None:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()


class FakeTranscripts:
    def __init__(self, transcripts: dict[str, str | Exception] | None = None) -> None:
        self.transcripts = transcripts or {}
        self.requested: list[str] = []

    def fetch(self, video_id: str) -> str | None:
        self.requested.append(video_id)
        transcript = self.transcripts.get(video_id)
        if isinstance(transcript, Exception):
            raise transcript
        return transcript


def video_id_for(index: int) -> str:
    return f"vid{index:08d}"


def browse_page(video_ids: list[str], *, continuation: str | None = None) -> dict[str, Any]:
    items: list[dict[str, Any]] = [
        {"richItemRenderer": {"content": {"videoRenderer": {"videoId": video_id}}}}
        for video_id in video_ids
    ]
    if continuation is not None:
        items.append(
            {
                "continuationItemRenderer": {
                    "continuationEndpoint": {
                        "continuationCommand": {"token": continuation, "request": "BROWSE"}
                    }
                }
            }
        )
    return {"contents": {"richGridRenderer": {"contents": items}}}


def player_response(video_id: str, *, title: str | None = None) -> dict[str, Any]:
    return {
        "videoDetails": {
            "videoId": video_id,
            "title": title or f"Title {video_id}",
            "shortDescription": f"Description {video_id}",
            "lengthSeconds": "125",
            "viewCount": "4521",
            "thumbnail": {
                "thumbnails": [
                    {"url": f"https://i.test/{video_id}/default.jpg", "width": 120, "height": 90},
                    {"url": f"https://i.test/{video_id}/maxres.jpg", "width": 1280, "height": 720},
                ]
            },
        },
        "microformat": {"playerMicroformatRenderer": {"publishDate": "2024-05-01"}},
    }


def watch_page(*, likes: str = "1,234", comments: str = "56") -> str:
    return (
        '{"segmentedLikeDislikeButtonViewModel":{"defaultIcon":{"iconType":"LIKE"},'
        f'"accessibility":{{"label":"{likes} likes"}}}},'
        f'"commentCount":{{"simpleText":"{comments}"}}'
    )


def build_site(video_ids: list[str], **overrides: Any) -> FakeYouTubeSite:
    pages: dict[str, str | Exception] = {
        CHANNEL_URL: f'<script>var data = {{"externalId":"{CHANNEL_ID}"}};</script>',
    }
    for video_id in video_ids:
        pages[f"https://yt.test/watch?v={video_id}"] = watch_page()
    site = FakeYouTubeSite(
        pages=pages,
        browse_responses=[browse_page(video_ids)],
        players={video_id: player_response(video_id) for video_id in video_ids},
        **overrides,
    )
    return site


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("CHANNEL_PULSE_DATA_DIR", str(data_dir))
    monkeypatch.setenv("CHANNEL_PULSE_TELEMETRY_SINK", "none")
    monkeypatch.setenv("CHANNEL_PULSE_CHANNEL_RATE_LIMIT_MAX_REQUESTS", "3")
    reset_cached_dependencies()

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client

    reset_cached_dependencies()
