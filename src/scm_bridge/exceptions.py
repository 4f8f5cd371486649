from typing import Any


class ScmError(Exception):
    """Base class for all errors raised by the SCM bridge."""

    pass


class UnrecoverableError(ScmError, ValueError):
    """Raised for inputs that can never succeed, no matter how often retried."""

    pass


class MalformedUrlError(UnrecoverableError):
    """Raised when a checkout URL doesn't match the checkout URL grammar."""

    pass


class InvalidRefError(UnrecoverableError):
    """Raised when an scm URI doesn't have the hostname:repo_id:branch shape."""

    pass


class UpstreamError(ScmError):
    """Raised when Bitbucket answers with an unexpected status code."""

    def __init__(self, status_code: int, body: Any = None, message: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"STATUS CODE {status_code}: {body!r}")


class NotFoundError(UpstreamError):
    """Raised when Bitbucket reports the requested resource as absent (404)."""

    def __init__(self, body: Any = None, message: str | None = None):
        super().__init__(404, body, message)


class CircuitOpenError(ScmError):
    """Raised when a request is rejected because the circuit breaker is open."""

    pass
