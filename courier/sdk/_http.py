"""Transfer handles, the handle pool and the multiplexer.

This module provides a thin wrapper around httpx. A ``TransferHandle`` owns
one ``httpx.AsyncClient`` and performs one request at a time; handles are
recycled through a bounded ``HandlePool`` so their connections are reused.
The ``Multiplexer`` drives several handles at once on the engine's event
loop, without threads.
"""

from __future__ import annotations

import asyncio
import ssl
import time
from typing import Callable

import httpx

from .codes import TransportCode, classify_exception
from .config import GatewayConfig
from .exceptions import ResourceExhausted
from .request import TransferSpec


def _ssl_verify(config: GatewayConfig) -> ssl.SSLContext | bool:
    if config.ca_bundle:
        return ssl.create_default_context(cafile=config.ca_bundle)
    return config.ssl_verify


class TransferHandle:
    """A reusable transfer resource.

    ``configure`` prepares the request, ``perform`` runs it and leaves the
    outcome on the handle (``status_code``, ``body``, ``error_code``,
    ``error_message``, ``elapsed_ms``) until the next ``reset``.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client
        self.reset()

    @classmethod
    def create(
        cls,
        config: GatewayConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TransferHandle":
        """Build a handle with its own client and connection pool."""
        if transport is None:
            transport = httpx.AsyncHTTPTransport(
                verify=_ssl_verify(config),
                local_address="0.0.0.0" if config.force_ipv4 else None,
            )
        return cls(httpx.AsyncClient(transport=transport, follow_redirects=False))

    def reset(self) -> None:
        """Forget the previous request and its outcome."""
        self.spec: TransferSpec | None = None
        self._request: httpx.Request | None = None
        self.status_code = 0
        self.body = ""
        self.error_code = 0
        self.error_message = ""
        self.elapsed_ms = 0
        self.done = False

    def configure(self, spec: TransferSpec) -> None:
        """Prepare the request; a request that cannot be built fails in ``perform``."""
        self.spec = spec
        try:
            self._request = self._client.build_request(
                spec.method,
                spec.url,
                headers=list(spec.headers),
                content=spec.content,
                files=spec.files,
                timeout=httpx.Timeout(spec.timeout_seconds),
            )
        except httpx.InvalidURL as exc:
            self._fail(TransportCode.URL_MALFORMAT, str(exc))
        except (TypeError, ValueError) as exc:
            # e.g. a header value that cannot be encoded
            self._fail(TransportCode.FAILED_INIT, f"{type(exc).__name__}: {exc}")

    def _fail(self, code: TransportCode, message: str) -> None:
        self._request = None
        self.error_code = int(code)
        self.error_message = message

    async def perform(self) -> None:
        """Run the configured request, recording transport failures."""
        if self._request is None:
            if not self.error_code:
                self.error_code = int(TransportCode.FAILED_INIT)
                self.error_message = "handle was not configured"
            self.done = True
            return

        started = time.perf_counter()
        try:
            response = await self._client.send(self._request)
        except httpx.HTTPError as exc:
            self.error_code, self.error_message = classify_exception(exc)
            self.elapsed_ms = int((time.perf_counter() - started) * 1000)
        else:
            self.status_code = response.status_code
            self.body = response.text
            try:
                self.elapsed_ms = int(response.elapsed.total_seconds() * 1000)
            except RuntimeError:
                self.elapsed_ms = int((time.perf_counter() - started) * 1000)
        finally:
            self.done = True

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()


HandleFactory = Callable[[], TransferHandle]


class HandlePool:
    """Free list of reset handles, bounded by *capacity*.

    ``acquire`` never blocks: when the free list is empty a new handle is
    built, so a batch may hold more handles than *capacity* at once. Surplus
    handles are destroyed on release.
    """

    def __init__(self, factory: HandleFactory, loop: asyncio.AbstractEventLoop, capacity: int = 5):
        self._factory = factory
        self._loop = loop
        self.capacity = capacity
        self._free: list[TransferHandle] = []

    def __len__(self) -> int:
        return len(self._free)

    def acquire(self) -> TransferHandle:
        if self._free:
            handle = self._free.pop()
            handle.reset()
            return handle
        try:
            return self._factory()
        except Exception as exc:
            raise ResourceExhausted(f"Cannot allocate transfer handle: {exc}") from exc

    def release(self, handle: TransferHandle) -> None:
        if len(self._free) >= self.capacity:
            self._destroy(handle)
            return
        handle.reset()
        self._free.append(handle)

    def close(self) -> None:
        while self._free:
            self._destroy(self._free.pop())

    def _destroy(self, handle: TransferHandle) -> None:
        self._loop.run_until_complete(handle.aclose())


class Multiplexer:
    """Drives several handles concurrently on one event loop.

    Mirrors a curl multi handle: ``perform`` makes non-blocking progress,
    ``select`` waits a bounded time for a completion and ``info_read``
    reports the handles that finished since the last call.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._tasks: dict[asyncio.Task, TransferHandle] = {}
        self._reported: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def running(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def add_handle(self, handle: TransferHandle) -> None:
        task = self._loop.create_task(handle.perform())
        self._tasks[task] = handle

    def remove_handle(self, handle: TransferHandle) -> None:
        for task, owner in list(self._tasks.items()):
            if owner is handle:
                if not task.done():
                    task.cancel()
                del self._tasks[task]
                self._reported.discard(task)

    def perform(self) -> int:
        """Let every transfer make progress without waiting; return the number still running."""
        self._loop.run_until_complete(asyncio.sleep(0))
        return self.running

    def select(self, timeout: float) -> int:
        """Block until a transfer completes or *timeout* seconds pass."""
        pending = [task for task in self._tasks if not task.done()]
        if not pending:
            return 0
        done, _ = self._loop.run_until_complete(
            asyncio.wait(pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        )
        return len(done)

    def info_read(self) -> list[TransferHandle]:
        finished = []
        for task, handle in self._tasks.items():
            if task.done() and task not in self._reported:
                self._reported.add(task)
                task.result()
                finished.append(handle)
        return finished

    def close(self) -> None:
        """Cancel whatever is still running and forget every handle."""
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        self._tasks.clear()
        self._reported.clear()
