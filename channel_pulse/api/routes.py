from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from channel_pulse.dependencies import get_channel_download_service, get_channel_rate_limiter
from channel_pulse.models.channel_contracts import ChannelDownloadRequest
from channel_pulse.services.channel_download_service import ChannelDownloadService
from channel_pulse.services.progress_stream import ProgressChannel
from channel_pulse.services.rate_limiter import SlidingWindowRateLimiter

router = APIRouter()

SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _client_key(request: Request) -> str:
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def _sse_frames(channel: ProgressChannel) -> Iterator[str]:
    try:
        for event in channel:
            yield f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
    finally:
        channel.close()


@router.post(
    "/api/youtube/channel",
    tags=["youtube"],
    operation_id="youtube_channel_download",
    response_class=StreamingResponse,
    responses={
        200: {
            "description": (
                "Server-sent events: `status` events followed by exactly one "
                "terminal `result` or `error` event."
            ),
            "content": {"text/event-stream": {}},
        },
        400: {"description": "`channelUrl` missing."},
        429: {"description": "Too many channel downloads started by this client."},
    },
)
def youtube_channel_download(
    payload: ChannelDownloadRequest,
    request: Request,
    service: Annotated[ChannelDownloadService, Depends(get_channel_download_service)],
    rate_limiter: Annotated[SlidingWindowRateLimiter | None, Depends(get_channel_rate_limiter)],
) -> StreamingResponse:
    if payload.channel_url is None:
        raise HTTPException(status_code=400, detail="channelUrl required")

    if rate_limiter is not None:
        decision = rate_limiter.take(_client_key(request))
        if not decision.allowed:
            raise HTTPException(
                status_code=429,
                detail="Too many channel downloads started. Try again later.",
                headers=decision.headers(),
            )

    context_tokens = bind_contextvars(channel_reference=payload.channel_url)
    try:
        channel = service.start(payload.channel_url, payload.max_videos)
    finally:
        reset_contextvars(**context_tokens)

    return StreamingResponse(
        _sse_frames(channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
