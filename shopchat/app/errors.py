"""Error taxonomy for the chat pipeline.

Only the controller turns these into user-facing text; everything below it
raises them and lets them propagate.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for internal pipeline failures."""

    stage: Optional[str] = None


class MalformedModelOutput(PipelineError):
    """The model never produced output matching the requested schema."""

    def __init__(self, message: str, raw_output: str = "", last_error: str = "", attempts: int = 0):
        super().__init__(message)
        self.raw_output = raw_output
        self.last_error = last_error
        self.attempts = attempts


class UpstreamUnavailable(PipelineError):
    """A model, embedding or retrieval call failed after its retries."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnsupportedIntent(PipelineError):
    """Classification produced no valid label."""
