"""Transport error codes.

Codes use the libcurl numbering so log lines and results stay comparable
with other gateway clients. ``classify_exception`` maps the exceptions
raised by httpx onto the closest code.
"""

from __future__ import annotations

from enum import IntEnum

import httpx


class TransportCode(IntEnum):
    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    FAILED_INIT = 2
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_PROXY = 5
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    PARTIAL_FILE = 18
    WRITE_ERROR = 23
    READ_ERROR = 26
    OUT_OF_MEMORY = 27
    OPERATION_TIMEDOUT = 28
    HTTP_POST_ERROR = 34
    SSL_CONNECT_ERROR = 35
    TOO_MANY_REDIRECTS = 47
    PEER_FAILED_VERIFICATION = 51
    GOT_NOTHING = 52
    SEND_ERROR = 55
    RECV_ERROR = 56
    SSL_CERTPROBLEM = 58
    SSL_CACERT = 60
    BAD_CONTENT_ENCODING = 61
    AGAIN = 81
    NO_CONNECTION_AVAILABLE = 89


def error_name(code: int) -> str:
    """Return the symbolic name of a transport code, or ``UNKNOWN``."""
    try:
        return TransportCode(code).name
    except ValueError:
        return "UNKNOWN"


def _connect_code(exc: Exception) -> TransportCode:
    text = str(exc).lower()
    if "name or service not known" in text or "nodename nor servname" in text \
            or "getaddrinfo" in text or "name resolution" in text:
        return TransportCode.COULDNT_RESOLVE_HOST
    if "ssl" in text or "certificate" in text:
        if "verify" in text:
            return TransportCode.PEER_FAILED_VERIFICATION
        return TransportCode.SSL_CONNECT_ERROR
    return TransportCode.COULDNT_CONNECT


def classify_exception(exc: Exception) -> tuple[int, str]:
    """Map an httpx exception to a ``(code, message)`` pair.

    The message is never empty, so a failed transfer is always recognisable
    even when the code falls back to ``FAILED_INIT``.
    """
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, httpx.TimeoutException):
        code = TransportCode.OPERATION_TIMEDOUT
    elif isinstance(exc, httpx.ProxyError):
        code = TransportCode.COULDNT_RESOLVE_PROXY
    elif isinstance(exc, httpx.ConnectError):
        code = _connect_code(exc)
    elif isinstance(exc, httpx.UnsupportedProtocol):
        code = TransportCode.UNSUPPORTED_PROTOCOL
    elif isinstance(exc, httpx.InvalidURL):
        code = TransportCode.URL_MALFORMAT
    elif isinstance(exc, httpx.RemoteProtocolError):
        code = TransportCode.GOT_NOTHING
    elif isinstance(exc, httpx.ReadError):
        code = TransportCode.RECV_ERROR
    elif isinstance(exc, httpx.WriteError):
        code = TransportCode.SEND_ERROR
    elif isinstance(exc, httpx.DecodingError):
        code = TransportCode.BAD_CONTENT_ENCODING
    elif isinstance(exc, httpx.TooManyRedirects):
        code = TransportCode.TOO_MANY_REDIRECTS
    else:
        code = TransportCode.FAILED_INIT
    return int(code), message
