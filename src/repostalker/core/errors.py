"""Error taxonomy for the chat services.

Rate-limit errors live next to the limiter in
``repostalker.infra.ratelimit.base``; everything raised by the
conversation loop and its callers is defined here.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """A required secret or setting is missing; raised before any model call."""


class UpstreamModelError(Exception):
    """The chat-completion endpoint failed, timed out, or returned nothing.

    ``status_code`` is the upstream HTTP status when one was received,
    ``None`` for timeouts, connection errors and empty answers.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolExecutionError(Exception):
    """A tool could not produce a result.

    Never reaches the caller: dispatch turns it into tool output.
    """


class MaxIterationsExceeded(Exception):
    """The loop used every allowed model call without a final answer."""

    def __init__(self, iterations: int) -> None:
        super().__init__(
            f"Max iterations ({iterations}) reached without final response"
        )
        self.iterations = iterations
