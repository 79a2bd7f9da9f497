"""Exception classes for the Courier SDK.

Only two kinds of error are raised by the engine itself:
``ResourceExhausted`` and ``ConfigurationError``. Transport, protocol and
decode failures are recorded on the request's ``Result``; the matching
exceptions below are raised only when a caller opts in through
``Result.raise_for_error()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .result import Result


class CourierError(Exception):
    """Root of every exception raised by courier.

    Catch it to handle engine failures and opted-in request failures
    alike.
    """

    pass


class ResourceExhausted(CourierError):
    """Raised when a transfer handle or multiplexer cannot be created."""

    pass


class ConfigurationError(CourierError, ValueError):
    """Raised when a request is built with invalid arguments.

    Examples are an unsupported HTTP method, an empty URI or changing a
    request that has already been executed.
    """

    pass


class RequestFailed(CourierError):
    """Base class for failures recorded on a ``Result``.

    Attributes
    ----------
    result : Result
        The failed result this exception was raised from
    """

    def __init__(self, result: "Result", message: str):
        self.result = result
        super().__init__(message)


class TransportError(RequestFailed):
    """The transfer itself failed (DNS, connect, TLS, timeout...).

    Attributes
    ----------
    code : int
        Transport error code, see ``courier.sdk.codes.TransportCode``
    url : str
        The URL that failed
    """

    def __init__(self, result: "Result", url: str):
        self.code = result.error_code
        self.url = url
        super().__init__(result, f"Failed to reach {url}: {result.error_message}")


class ProtocolError(RequestFailed):
    """Raised when the server answered with a non-success status code.

    Attributes
    ----------
    status_code : int
        The HTTP status code (e.g., 400, 404, 500)
    body : str
        The response body, typically containing error details
    """

    def __init__(self, result: "Result", body: str):
        self.status_code = result.status_code
        self.body = body
        super().__init__(result, f"HTTP {result.status_code}: {body}")


class DecodeError(RequestFailed):
    """Raised when a response body could not be decoded as JSON."""

    def __init__(self, result: "Result"):
        super().__init__(result, f"Cannot decode response: {result.error_message}")
