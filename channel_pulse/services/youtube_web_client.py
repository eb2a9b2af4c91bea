from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from channel_pulse.services.channel_errors import UpstreamRequestError
from channel_pulse.services.progress_stream import CancellationToken

LOGGER = logging.getLogger("channel_pulse.youtube.http")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class InnertubeClientContext:
    client_name: str = "WEB"
    client_version: str = "2.20241201.00.00"
    hl: str = "en"
    gl: str = "US"

    def as_payload(self) -> dict[str, Any]:
        return {
            "client": {
                "clientName": self.client_name,
                "clientVersion": self.client_version,
                "hl": self.hl,
                "gl": self.gl,
            }
        }


@dataclass(frozen=True)
class YouTubeWebClient:
    """Plain HTTP access to the public site and its internal JSON API."""

    base_url: str = "https://www.youtube.com"
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.9"
    timeout_seconds: float = 15.0
    innertube_context: InnertubeClientContext = InnertubeClientContext()
    cancellation: CancellationToken | None = None

    def with_cancellation(self, cancellation: CancellationToken) -> YouTubeWebClient:
        return replace(self, cancellation=cancellation)

    def watch_url(self, video_id: str) -> str:
        return f"{self.base_url}/watch?v={video_id}"

    def fetch_text(self, url: str) -> str:
        request = Request(
            url,
            headers={
                "Accept": "text/html,application/xhtml+xml",
                "Accept-Language": self.accept_language,
                "User-Agent": self.user_agent,
            },
            method="GET",
        )
        return self._send(request)

    def post_innertube(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/youtubei/v1/{endpoint}"
        payload = {"context": self.innertube_context.as_payload(), **body}
        request = Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "User-Agent": self.user_agent,
            },
            method="POST",
        )
        raw_body = self._send(request)
        try:
            parsed = cast(object, json.loads(raw_body))
        except json.JSONDecodeError as exc:
            raise UpstreamRequestError(
                f"Invalid JSON from {endpoint} endpoint: {exc}",
                url=url,
            ) from exc
        if not isinstance(parsed, dict):
            raise UpstreamRequestError(f"Unexpected {endpoint} response shape.", url=url)
        return cast(dict[str, Any], parsed)

    def _send(self, request: Request) -> str:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()
        url = request.full_url
        LOGGER.debug("youtube http request method=%s url=%s", request.get_method(), url)
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                charset = response.headers.get_content_charset() or "utf-8"
                return response.read().decode(charset, errors="replace")
        except HTTPError as exc:
            status_code = int(exc.code)
            raise UpstreamRequestError(
                f"HTTP {status_code} from {url}",
                url=url,
                status_code=status_code,
            ) from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise UpstreamRequestError(f"Request to {url} failed: {exc}", url=url) from exc
