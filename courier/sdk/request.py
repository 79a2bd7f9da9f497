"""Request descriptors and transfer specs.

A ``RequestDescriptor`` describes one HTTP call together with its execution
state. ``build_transfer_spec`` turns it into the concrete ``TransferSpec`` a
transfer handle is configured with.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

import httpx

from .config import DEFAULT_TIMEOUT_MS, GatewayConfig
from .exceptions import ConfigurationError
from .uri import fill_path_params, join_host

if TYPE_CHECKING:
    from .result import Result

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

# Timeouts below this are taken to be seconds.
SECONDS_THRESHOLD = 30

# Transfers shorter than this must not rely on signal based timers.
NOSIGNAL_THRESHOLD_MS = 1000

RequestData = Union[Mapping[str, Any], str, bytes]
BodyBuilder = Callable[[], Optional[RequestData]]
ParamsFilter = Callable[[Optional[RequestData]], Optional[RequestData]]


class RequestState(Enum):
    INIT = "init"
    SUCCESS = "success"
    ERROR = "error"


class BodyEncoding(Enum):
    """How the request body mapping is serialized."""

    JSON = "json"
    FORM = "form"
    RAW = "raw"


@dataclass(frozen=True)
class TransferSpec:
    """Everything a transfer handle needs to perform one request."""

    method: str
    url: str
    headers: tuple[tuple[str, str], ...]
    timeout_ms: int
    content: bytes | None = None
    files: list[tuple[str, tuple[None, str]]] | None = None
    payload: Any = None
    nosignal: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


def normalize_method(method: str) -> str:
    """Return the canonical upper-case method name.

    Raises
    ------
    ConfigurationError
        If *method* is not one of GET, POST, PUT, DELETE or PATCH
    """
    name = (method or "").strip().upper()
    if name not in METHODS:
        raise ConfigurationError(f"Unsupported HTTP method: {method!r}")
    return name


def normalize_timeout(timeout: int | float | None, default_ms: int = DEFAULT_TIMEOUT_MS) -> int:
    """Resolve a declared timeout to milliseconds.

    ``None`` and non-positive values fall back to *default_ms*; positive
    values below ``SECONDS_THRESHOLD`` are seconds.
    """
    if timeout is None or timeout <= 0:
        return int(default_ms)
    if timeout < SECONDS_THRESHOLD:
        return int(timeout * 1000)
    return int(timeout)


class RequestDescriptor:
    """One HTTP call plus its execution state.

    Descriptors are created by ``Engine.create_request``, which also
    registers them in the engine's pending pool. They can be adjusted with the
    ``set_*`` / ``add_header`` builders until they are executed; after that
    they are read-only.

    Parameters
    ----------
    request_id : int
        Engine-unique identifier
    method : str
        HTTP method, case-insensitive
    uri : str
        Absolute URL or gateway-relative path, may contain ``{name}``
        placeholders filled from *params*
    params : Mapping, optional
        Path parameters, then query string (GET) or body (other methods)
    """

    def __init__(
        self,
        request_id: int,
        method: str,
        uri: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: int | float | None = None,
        headers: list[tuple[str, str]] | None = None,
        encoding: BodyEncoding = BodyEncoding.JSON,
        decode_json: bool = True,
        body_builder: BodyBuilder | None = None,
        params_filter: ParamsFilter | None = None,
    ):
        if not isinstance(uri, str) or not uri:
            raise ConfigurationError("Empty uri not allowed")
        self.id = request_id
        self.method = normalize_method(method)
        self.uri = uri
        self.params = dict(params) if params else {}
        self.timeout = timeout
        self.headers: list[tuple[str, str]] = list(headers or [])
        self.encoding = BodyEncoding(encoding)
        self.decode_json = decode_json
        self.body_builder = body_builder
        self.params_filter = params_filter

        self.state = RequestState.INIT
        self.result: Optional["Result"] = None
        self.spec: Optional[TransferSpec] = None

        # deferred execution
        self.lazy = False
        self.callback: Optional[Callable[..., Any]] = None
        self.callback_arg: Any = None
        self.callback_fired = False

    def __repr__(self) -> str:
        return f"<RequestDescriptor #{self.id} {self.method} {self.uri} {self.state.value}>"

    @property
    def is_terminal(self) -> bool:
        return self.state is not RequestState.INIT

    @property
    def url(self) -> str:
        """Resolved URL once the request was built, the raw URI before."""
        return self.spec.url if self.spec else self.uri

    # ---------------- builders -----------------

    def _ensure_init(self) -> None:
        if self.is_terminal:
            raise ConfigurationError(f"Request #{self.id} was already executed")

    def set_method(self, method: str) -> None:
        self._ensure_init()
        self.method = normalize_method(method)

    def set_timeout(self, timeout: int | float | None) -> None:
        self._ensure_init()
        self.timeout = timeout

    def add_header(self, name: str, value: Any) -> None:
        self._ensure_init()
        self.headers.append((name, str(value)))

    def set_encoding(self, encoding: BodyEncoding) -> None:
        self._ensure_init()
        self.encoding = BodyEncoding(encoding)

    def set_decode_json(self, flag: bool = True) -> None:
        self._ensure_init()
        self.decode_json = bool(flag)

    def set_body_builder(self, builder: BodyBuilder | None) -> None:
        self._ensure_init()
        self.body_builder = builder

    def set_params_filter(self, params_filter: ParamsFilter | None) -> None:
        self._ensure_init()
        self.params_filter = params_filter

    def collect_params(self) -> dict[str, Any] | str | bytes:
        """Return the request data: explicit params, else the body builder's.

        Text returned by the builder or the filter is kept as it is.
        """
        data: Any = dict(self.params) if self.params else None
        if data is None and self.body_builder is not None:
            data = self.body_builder()
        if self.params_filter is not None:
            data = self.params_filter(data)
        if not data:
            return {}
        if isinstance(data, (str, bytes)):
            return data
        return dict(data)

    def finish(self, result: "Result") -> None:
        self.result = result
        self.state = RequestState.SUCCESS if result.success else RequestState.ERROR


# ---------------- body encoders -----------------


def query_pairs(data: Any, prefix: str | None = None) -> list[tuple[str, str]]:
    """Flatten *data* into form fields.

    Nested mappings and sequences become bracketed keys (``f[a]``,
    ``tags[0]``), booleans become ``1``/``0`` and ``None`` values are left
    out.
    """
    pairs: list[tuple[str, str]] = []
    items = data.items() if isinstance(data, Mapping) else enumerate(data)
    for key, value in items:
        name = str(key) if prefix is None else f"{prefix}[{key}]"
        if value is None:
            continue
        if isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        elif isinstance(value, (Mapping, list, tuple)):
            pairs.extend(query_pairs(value, name))
        else:
            pairs.append((name, str(value)))
    return pairs


def urlencode(data: Mapping[str, Any]) -> str:
    return str(httpx.QueryParams(query_pairs(data)))


def _with_length(content: bytes, content_type: str):
    return [("Content-Type", content_type), ("Content-Length", str(len(content)))]


def _encode_json(data: Mapping[str, Any]):
    content = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return content, None, _with_length(content, "application/json")


def _encode_form(data: Mapping[str, Any]):
    content = urlencode(data).encode("ascii")
    return content, None, _with_length(content, "application/x-www-form-urlencoded")


def _encode_raw(data: Mapping[str, Any]):
    # handed to the transport as form fields, which picks multipart encoding
    files = [(name, (None, value)) for name, value in query_pairs(data)]
    return None, files, []


_ENCODERS = {
    BodyEncoding.JSON: _encode_json,
    BodyEncoding.FORM: _encode_form,
    BodyEncoding.RAW: _encode_raw,
}

_CONTENT_TYPES = {
    BodyEncoding.JSON: "application/json",
    BodyEncoding.FORM: "application/x-www-form-urlencoded",
}


def _encode_text(data: str | bytes, encoding: BodyEncoding):
    """Send an already serialized body as it is."""
    content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if encoding in _CONTENT_TYPES:
        return content, None, _with_length(content, _CONTENT_TYPES[encoding])
    return content, None, []


def build_transfer_spec(descriptor: RequestDescriptor, config: GatewayConfig) -> TransferSpec:
    """Build the transfer spec for *descriptor*.

    Resolves timeout and URL, appends the query string for GET and
    serializes the body for every other method. A str/bytes body (from a
    body builder or params filter) is sent verbatim and fills no path
    placeholders.
    """
    timeout_ms = normalize_timeout(descriptor.timeout, config.default_timeout_ms)
    data = descriptor.collect_params()
    text = isinstance(data, (str, bytes))
    uri, remaining = fill_path_params(descriptor.uri, {} if text else data)
    if not text:
        data = remaining
    url = join_host(config.gateway_host, uri)
    headers = list(descriptor.headers)
    content = None
    files = None

    if descriptor.method == "GET":
        if text:
            query = data.decode("utf-8") if isinstance(data, bytes) else data
            query = query.lstrip("?")
        else:
            query = urlencode(data) if data else ""
        if query:
            joiner = "&" if "?" in url else "?"
            url = url + joiner + query
    else:
        if descriptor.method == "DELETE":
            headers.append(("X-HTTP-Method-Override", "DELETE"))
        if text:
            content, files, body_headers = _encode_text(data, descriptor.encoding)
            headers.extend(body_headers)
        elif data:
            content, files, body_headers = _ENCODERS[descriptor.encoding](data)
            headers.extend(body_headers)

    return TransferSpec(
        method=descriptor.method,
        url=url,
        headers=tuple(headers),
        timeout_ms=timeout_ms,
        content=content,
        files=files,
        payload=data or None,
        nosignal=timeout_ms < NOSIGNAL_THRESHOLD_MS,
    )
