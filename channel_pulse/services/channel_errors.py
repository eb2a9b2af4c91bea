from __future__ import annotations


class ChannelPipelineError(Exception):
    pass


class UpstreamRequestError(ChannelPipelineError):
    def __init__(self, message: str, *, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ChannelResolutionError(ChannelPipelineError):
    pass


class EmptyChannelError(ChannelPipelineError):
    pass


class PipelineCancelledError(ChannelPipelineError):
    pass


class StreamClosedError(ChannelPipelineError):
    pass
