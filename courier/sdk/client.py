"""Synchronous client for backend services behind the API gateway."""

from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional

import httpx

from .config import GatewayConfig
from .engine import Engine
from .request import BodyBuilder, BodyEncoding, ParamsFilter, RequestDescriptor
from .result import Envelope, Result


class PendingRequest:
    """Caller-side handle of one request.

    Created by ``GatewayClient.create_request``. The request runs at the
    latest when its result is first read; reading it again returns the cached
    result without another transfer.
    """

    def __init__(self, client: "GatewayClient", descriptor: RequestDescriptor):
        self._client = client
        self.descriptor = descriptor

    def __repr__(self) -> str:
        return f"<PendingRequest {self.descriptor!r}>"

    @property
    def id(self) -> int:
        return self.descriptor.id

    @property
    def result(self) -> Result:
        return self._client.get_result(self)

    def request(self) -> Result:
        """Execute now (a no-op if the request already ran)."""
        return self._client.execute(self)

    def is_success(self) -> bool:
        return self._client.is_success(self)

    def api_result(self) -> Envelope:
        """Return the standard API envelope, executing the request if needed."""
        return self.result.api_result()

    def defer(self, callback: Optional[Callable[..., Any]] = None, arg: Any = None) -> bool:
        return self._client.defer_execute(self, callback, arg)

    # ---------------- builders -----------------

    def add_header(self, name: str, value: Any) -> "PendingRequest":
        self.descriptor.add_header(name, value)
        return self

    def set_timeout(self, timeout: int | float | None) -> "PendingRequest":
        self.descriptor.set_timeout(timeout)
        return self

    def set_method(self, method: str) -> "PendingRequest":
        self.descriptor.set_method(method)
        return self

    def set_encoding(self, encoding: BodyEncoding) -> "PendingRequest":
        self.descriptor.set_encoding(encoding)
        return self

    def set_decode_json(self, flag: bool = True) -> "PendingRequest":
        self.descriptor.set_decode_json(flag)
        return self

    def set_body_builder(self, builder: BodyBuilder | None) -> "PendingRequest":
        self.descriptor.set_body_builder(builder)
        return self

    def set_params_filter(self, params_filter: ParamsFilter | None) -> "PendingRequest":
        self.descriptor.set_params_filter(params_filter)
        return self


class GatewayClient:
    """Client for calling backend HTTP services through the gateway.

    Requests are registered as pending when they are created and run either
    one by one (``execute``, or implicitly on first read of the result), all
    together (``execute_all``), or at the next ``flush_deferred`` when they
    were deferred.

    Per-request failures never raise: inspect ``Result.success`` (or call
    ``Result.raise_for_error()``).

    Parameters
    ----------
    config : GatewayConfig, optional
        Configuration. Defaults to the process-wide configuration built
        from the environment
    transport : httpx.AsyncBaseTransport, optional
        Custom transport for every transfer, mainly for testing

    Raises
    ------
    ResourceExhausted
        When a transfer handle or a multiplexer cannot be created
    ConfigurationError
        When a request is created with an unsupported method or empty URI
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        engine: Engine | None = None,
    ):
        self.engine = engine or Engine(config, transport=transport)
        self.config = self.engine.config

    def __enter__(self) -> "GatewayClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled transfer handles.

        Should be called when done with the client. Can also be used as a
        context manager to handle this automatically.
        """
        self.engine.close()

    # ---------------- request building -----------------

    def create_request(
        self,
        method: str,
        uri: str,
        params: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> PendingRequest:
        """Create a pending request.

        Parameters
        ----------
        method : str
            GET, POST, PUT, DELETE or PATCH (case-insensitive)
        uri : str
            Absolute URL, or a path relative to the configured gateway host.
            ``{name}`` placeholders are filled from *params*
        params : Mapping, optional
            Path parameters; whatever is left becomes the query string for
            GET and the request body otherwise
        **options
            ``timeout`` (ms, or seconds when below 30), ``headers`` (list of
            name/value pairs), ``encoding`` (``BodyEncoding``),
            ``decode_json`` (default True), ``body_builder`` and
            ``params_filter``

        Returns
        -------
        PendingRequest
            Handle used to execute the request and read its result
        """
        descriptor = self.engine.create_request(method, uri, params, **options)
        return PendingRequest(self, descriptor)

    def get(self, uri: str, params: Mapping[str, Any] | None = None, **options: Any) -> PendingRequest:
        return self.create_request("GET", uri, params, **options)

    def post(self, uri: str, params: Mapping[str, Any] | None = None, **options: Any) -> PendingRequest:
        return self.create_request("POST", uri, params, **options)

    def put(self, uri: str, params: Mapping[str, Any] | None = None, **options: Any) -> PendingRequest:
        return self.create_request("PUT", uri, params, **options)

    def delete(self, uri: str, params: Mapping[str, Any] | None = None, **options: Any) -> PendingRequest:
        return self.create_request("DELETE", uri, params, **options)

    def patch(self, uri: str, params: Mapping[str, Any] | None = None, **options: Any) -> PendingRequest:
        return self.create_request("PATCH", uri, params, **options)

    # ---------------- execution -----------------

    def execute(self, request: PendingRequest) -> Result:
        """Execute *request* now with a blocking transfer."""
        return self.engine.execute_one(request.descriptor)

    def execute_all(self) -> List[Result]:
        """Execute every pending request concurrently.

        Returns
        -------
        List[Result]
            One result per request, in completion order
        """
        return self.engine.execute_all()

    def defer_execute(
        self,
        request: PendingRequest,
        callback: Optional[Callable[..., Any]] = None,
        arg: Any = None,
    ) -> bool:
        """Defer *request* to the next ``flush_deferred``.

        Parameters
        ----------
        request : PendingRequest
            A request that has not been executed yet
        callback : callable, optional
            Called with the request (and *arg*, when given) once its result
            is ready. It may create and defer further requests; they run in
            the same flush
        arg : Any, optional
            Extra argument passed to *callback*

        Returns
        -------
        bool
            False when the request was no longer pending
        """
        def wrapped(_descriptor: RequestDescriptor, *args: Any) -> Any:
            return callback(request, *args)

        return self.engine.defer(request.descriptor, wrapped if callback else None, arg)

    def flush_deferred(self) -> None:
        """Run all pending and deferred requests, including those their callbacks add."""
        self.engine.flush_deferred()

    def get_result(self, request: PendingRequest) -> Result:
        return self.engine.get_result(request.descriptor)

    def is_success(self, request: PendingRequest) -> bool:
        return self.engine.is_success(request.descriptor)
