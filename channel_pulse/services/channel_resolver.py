from __future__ import annotations

import logging
import re
from typing import Protocol

from channel_pulse.services.channel_errors import ChannelResolutionError

LOGGER = logging.getLogger("channel_pulse.youtube.resolver")

CHANNEL_ID_PATTERN = re.compile(r"^UC[A-Za-z0-9_-]{22}$")
# externalId names the owning channel even on localized or dubbed variants.
_EXTERNAL_ID_MARKER = re.compile(r'"externalId":"(UC[A-Za-z0-9_-]{22})"')
_CHANNEL_ID_MARKER = re.compile(r'"channelId":"(UC[A-Za-z0-9_-]{22})"')
_HANDLE_PATTERN = re.compile(r"^@[\w.\-]+$")


class PageFetcher(Protocol):
    @property
    def base_url(self) -> str:
        ...

    def fetch_text(self, url: str) -> str:
        ...


def normalize_channel_reference(reference: str, *, base_url: str) -> str:
    normalized = reference.strip()
    if not normalized:
        raise ChannelResolutionError("Channel reference must not be empty.")
    if normalized.startswith(("http://", "https://")):
        return normalized
    if _HANDLE_PATTERN.match(normalized):
        return f"{base_url}/{normalized}"
    if CHANNEL_ID_PATTERN.match(normalized):
        return f"{base_url}/channel/{normalized}"
    if normalized.startswith(("www.", "youtube.com/", "m.youtube.com/")):
        return f"https://{normalized}"
    return f"{base_url}/@{normalized.lstrip('@')}"


def extract_channel_id(html_text: str) -> str | None:
    for marker in (_EXTERNAL_ID_MARKER, _CHANNEL_ID_MARKER):
        matched = marker.search(html_text)
        if matched is not None:
            return matched.group(1)
    return None


class ChannelResolver:
    def __init__(self, fetcher: PageFetcher) -> None:
        self._fetcher = fetcher

    def resolve(self, reference: str) -> str:
        url = normalize_channel_reference(reference, base_url=self._fetcher.base_url)
        html_text = self._fetcher.fetch_text(url)
        channel_id = extract_channel_id(html_text)
        if channel_id is None:
            LOGGER.info("youtube channel resolve not_found url=%s", url)
            raise ChannelResolutionError("Could not resolve channel ID from URL")
        LOGGER.info("youtube channel resolved url=%s channel_id=%s", url, channel_id)
        return channel_id
