from __future__ import annotations

import argparse
import json
import os
import re
import sys
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any, cast
from urllib.request import Request, urlopen

from channel_pulse.models.channel_contracts import DEFAULT_MAX_VIDEOS

_HANDLE_PATTERN = re.compile(r"@([\w-]+)")


class ChannelDownloadFailedError(RuntimeError):
    pass


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Start a channel download on a running Channel Pulse server, follow its "
            "progress stream and save the resulting videos as JSON."
        ),
    )
    parser.add_argument("channel_url", help="Channel URL or @handle.")
    parser.add_argument(
        "--max-videos",
        type=int,
        default=DEFAULT_MAX_VIDEOS,
        help=f"Videos to download (1-100). Default: {DEFAULT_MAX_VIDEOS}.",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=os.getenv("CHANNEL_PULSE_API_BASE_URL", "http://127.0.0.1:8000"),
        help="Channel Pulse API base URL.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output JSON path. Default: <handle>_videos.json in the current directory.",
    )
    return parser.parse_args()


def default_output_path(channel_url: str) -> Path:
    matched = _HANDLE_PATTERN.search(channel_url)
    channel_name = matched.group(1) if matched is not None else "channel"
    return Path(f"{channel_name}_videos.json")


def iter_sse_events(lines: Iterable[bytes]) -> Iterator[dict[str, Any]]:
    for raw_line in lines:
        line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line.startswith("data: "):
            continue
        try:
            parsed = cast(object, json.loads(line[len("data: ") :]))
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            yield cast(dict[str, Any], parsed)


def follow_channel_download(
    events: Iterable[dict[str, Any]],
    *,
    on_status: Callable[[dict[str, Any]], None] | None = None,
) -> list[dict[str, Any]]:
    for event in events:
        event_type = event.get("type")
        if event_type == "status":
            if on_status is not None:
                on_status(event)
        elif event_type == "error":
            raise ChannelDownloadFailedError(str(event.get("message") or "Download failed"))
        elif event_type == "result":
            videos = event.get("videos")
            if not isinstance(videos, list):
                raise ChannelDownloadFailedError("Result event carried no video list.")
            return cast(list[dict[str, Any]], videos)
    raise ChannelDownloadFailedError("Stream ended without a result event.")


def _print_status(event: dict[str, Any]) -> None:
    print(f"[{event.get('progress', 0):>3}%] {event.get('message', '')}", file=sys.stderr)


def main() -> int:
    args = _parse_args()
    endpoint = f"{args.base_url.rstrip('/')}/api/youtube/channel"
    body = json.dumps({"channelUrl": args.channel_url, "maxVideos": args.max_videos})
    request = Request(
        endpoint,
        data=body.encode("utf-8"),
        headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
        method="POST",
    )
    with urlopen(request) as response:
        try:
            videos = follow_channel_download(iter_sse_events(response), on_status=_print_status)
        except ChannelDownloadFailedError as exc:
            print(f"Download failed: {exc}", file=sys.stderr)
            return 1

    output_path: Path = args.output or default_output_path(args.channel_url)
    output_path.write_text(json.dumps(videos, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Downloaded {len(videos)} videos to {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
