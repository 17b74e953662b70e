"""
Application errors for clean API error handling.

Every failure talking to Deep Search is a DeepSearchError subclass so the search
service and API layer can tell transport, protocol and terminal-state failures
apart. None of them is fatal to the process; each is scoped to one request.
"""


class ConfigError(Exception):
    """Raised at startup when configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DeepSearchError(Exception):
    """Base class for errors raised by the Deep Search client."""


class TransportError(DeepSearchError):
    """Network or connection failure. The httpx exception is chained as __cause__."""


class UnexpectedStatusError(DeepSearchError):
    """Remote answered with a status outside the accepted set. Body is kept verbatim."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"unexpected status {status_code}: {body}")


class DecodeError(DeepSearchError):
    """Response body did not match the expected conversation shape."""


class QuestionFailedError(DeepSearchError):
    """Remote marked the question as failed."""

    def __init__(self) -> None:
        super().__init__("question processing failed")


class QuestionCancelledError(DeepSearchError):
    """Remote marked the question as cancelled."""

    def __init__(self) -> None:
        super().__init__("question was cancelled")


class PollTimeoutError(DeepSearchError):
    """Local polling deadline passed before the question reached a terminal status."""

    def __init__(self) -> None:
        super().__init__("timeout waiting for response")


class RequestCancelledError(DeepSearchError):
    """The caller's cancellation signal fired while waiting."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class QueryFailedError(Exception):
    """A submit-query stage failed; cause is the underlying DeepSearchError."""

    def __init__(self, message: str, cause: DeepSearchError) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)
