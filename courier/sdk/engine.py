"""Request execution engine.

The engine owns the pending pool (requests created but not yet executed),
the lazy pool (requests deferred to the next flush), the transfer handle
pool and the event loop every transfer runs on. It is single threaded:
concurrency means multiplexing several transfers on that loop, never a
worker thread, and it must not be driven from inside a running event loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Mapping, Optional

import httpx

from ._http import HandleFactory, HandlePool, Multiplexer, TransferHandle
from .completion import CompletionHandler
from .config import GatewayConfig, get_config
from .exceptions import ResourceExhausted
from .request import RequestDescriptor, build_transfer_spec
from .result import Result

logger = logging.getLogger(__name__)

MultiplexerFactory = Callable[[asyncio.AbstractEventLoop], Multiplexer]


class Engine:
    """Executes request descriptors one at a time or as concurrent batches.

    Parameters
    ----------
    config : GatewayConfig, optional
        Defaults to the process-wide configuration
    transport : httpx.AsyncBaseTransport, optional
        Transport shared by every handle (e.g. ``httpx.MockTransport`` in
        tests). By default each handle gets its own connection pool.
    handle_factory : callable, optional
        Builds new transfer handles; overrides *transport*
    multiplexer_factory : callable, optional
        Builds the multiplexer of a batch from the engine's event loop
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        handle_factory: HandleFactory | None = None,
        multiplexer_factory: MultiplexerFactory = Multiplexer,
        log: logging.Logger | None = None,
    ):
        self.config = config or get_config()
        self._loop = asyncio.new_event_loop()
        if handle_factory is None:

            def handle_factory() -> TransferHandle:
                return TransferHandle.create(self.config, transport)

        self.handles = HandlePool(handle_factory, self._loop, self.config.handle_pool_size)
        self._multiplexer_factory = multiplexer_factory
        self.completion = CompletionHandler(self.config, log)

        self.pending: dict[int, RequestDescriptor] = {}
        self.lazy: dict[int, RequestDescriptor] = {}
        self._ids = itertools.count()
        self._steps = itertools.count(1)

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Destroy pooled handles and the event loop."""
        if self._loop.is_closed():
            return
        self.handles.close()
        self._loop.run_until_complete(self._loop.shutdown_asyncgens())
        self._loop.close()

    # ---------------- descriptors -----------------

    def create_request(
        self,
        method: str,
        uri: str,
        params: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> RequestDescriptor:
        """Build a descriptor and register it in the pending pool."""
        descriptor = RequestDescriptor(next(self._ids), method, uri, params, **options)
        self.pending[descriptor.id] = descriptor
        return descriptor

    def defer(
        self,
        descriptor: RequestDescriptor,
        callback: Optional[Callable[..., Any]] = None,
        arg: Any = None,
    ) -> bool:
        """Move a pending descriptor to the lazy pool.

        *callback* is called once the descriptor's result exists, as
        ``callback(descriptor)`` or ``callback(descriptor, arg)`` when *arg*
        is given. Returns False, and does nothing, when the descriptor is no
        longer pending.
        """
        if descriptor.id not in self.pending:
            return False
        del self.pending[descriptor.id]
        self.lazy[descriptor.id] = descriptor
        descriptor.lazy = True
        descriptor.callback = callback
        descriptor.callback_arg = arg
        return True

    def get_result(self, descriptor: RequestDescriptor) -> Result:
        """Return the descriptor's result, executing it first if needed."""
        if descriptor.result is None:
            return self.execute_one(descriptor)
        return descriptor.result

    def is_success(self, descriptor: RequestDescriptor) -> bool:
        return self.get_result(descriptor).success

    # ---------------- execution -----------------

    def execute_one(self, descriptor: RequestDescriptor) -> Result:
        """Execute a single descriptor with a blocking transfer.

        A descriptor that already ran is not executed again; its cached
        result is returned.
        """
        if descriptor.is_terminal:
            return descriptor.result

        handle = self.handles.acquire()
        try:
            descriptor.spec = build_transfer_spec(descriptor, self.config)
            handle.configure(descriptor.spec)
        except Exception:
            self.handles.release(handle)
            raise

        self.pending.pop(descriptor.id, None)
        self.lazy.pop(descriptor.id, None)
        step = next(self._steps)
        try:
            self._loop.run_until_complete(handle.perform())
            result = self._complete(descriptor, handle, step=step)
        finally:
            self.handles.release(handle)

        self._fire_callback(descriptor)
        return result

    def execute_all(self) -> list[Result]:
        """Execute every pending descriptor, concurrently when there are several.

        Returns one result per descriptor, in completion order.

        Raises
        ------
        ResourceExhausted
            If the multiplexer or a transfer handle cannot be created. No
            transfer has started at that point and the descriptors stay
            pending.
        """
        if not self.pending:
            return []
        if len(self.pending) == 1:
            descriptor = next(iter(self.pending.values()))
            return [self.execute_one(descriptor)]

        batch = list(self.pending.values())
        try:
            multi = self._multiplexer_factory(self._loop)
        except Exception as exc:
            raise ResourceExhausted(f"Cannot create multiplexer: {exc}") from exc

        prepared: list[tuple[RequestDescriptor, TransferHandle]] = []
        try:
            for descriptor in batch:
                handle = self.handles.acquire()
                prepared.append((descriptor, handle))
                descriptor.spec = build_transfer_spec(descriptor, self.config)
                handle.configure(descriptor.spec)
        except Exception:
            for _, handle in prepared:
                self.handles.release(handle)
            multi.close()
            raise

        step = next(self._steps)
        in_flight = {id(handle): (descriptor, handle) for descriptor, handle in prepared}
        logger.debug("Running batch of %d requests (step %d)", len(in_flight), step)
        results: list[Result] = []
        try:
            for descriptor, handle in prepared:
                multi.add_handle(handle)
                del self.pending[descriptor.id]
            while in_flight:
                multi.perform()
                for handle in multi.info_read():
                    descriptor, _ = in_flight.pop(id(handle))
                    results.append(self._complete(descriptor, handle, step=step, multi=True))
                    multi.remove_handle(handle)
                    self.handles.release(handle)
                if in_flight and multi.running:
                    multi.select(self.config.select_timeout)
        finally:
            multi.close()
            for _, handle in in_flight.values():
                self.handles.release(handle)
        return results

    def flush_deferred(self) -> None:
        """Run every pending and deferred descriptor, including work their callbacks add."""
        while self.pending or self.lazy:
            self.pending.update(self.lazy)
            self.lazy.clear()
            round_ = list(self.pending.values())
            self.execute_all()
            for descriptor in round_:
                self._fire_callback(descriptor)

    # ---------------- internal -----------------

    def _complete(
        self,
        descriptor: RequestDescriptor,
        handle: TransferHandle,
        *,
        step: int,
        multi: bool = False,
    ) -> Result:
        result = self.completion.complete(
            descriptor,
            handle.error_code,
            handle.error_message,
            handle.status_code,
            handle.body,
            handle.elapsed_ms,
            step=step,
            multi=multi,
        )
        descriptor.finish(result)
        return result

    def _fire_callback(self, descriptor: RequestDescriptor) -> None:
        if not descriptor.lazy or descriptor.callback is None or descriptor.callback_fired:
            return
        if descriptor.result is None:
            return
        descriptor.callback_fired = True
        if descriptor.callback_arg is not None:
            descriptor.callback(descriptor, descriptor.callback_arg)
        else:
            descriptor.callback(descriptor)
