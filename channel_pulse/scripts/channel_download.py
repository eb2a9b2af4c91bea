from __future__ import annotations

import argparse
import json
import sys

from channel_pulse.config import load_settings
from channel_pulse.dependencies import build_channel_download_service
from channel_pulse.models.channel_contracts import DEFAULT_MAX_VIDEOS


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Download channel video metadata without the HTTP server. "
            "Prints each progress event as one JSON line."
        ),
    )
    parser.add_argument("channel", help="Channel URL, @handle or UC... channel id.")
    parser.add_argument(
        "--max-videos",
        type=int,
        default=DEFAULT_MAX_VIDEOS,
        help=f"Videos to download (1-100). Default: {DEFAULT_MAX_VIDEOS}.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel per-video fetch workers (overrides CHANNEL_PULSE_FETCH_WORKERS).",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    settings = load_settings()
    if args.workers is not None:
        settings = settings.model_copy(update={"fetch_workers": max(1, args.workers)})

    service = build_channel_download_service(settings)
    exit_code = 1
    for event in service.start(args.channel, args.max_videos):
        print(json.dumps(event, ensure_ascii=False), flush=True)
        if event.get("type") == "result":
            exit_code = 0
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
