"""
Request Orchestrator

Wires the gate, cache, processor registry, executors and history store into
the single ``submit`` operation used by callers.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .cache import ResponseCache
from .core.config import CourierConfig, get_config
from .core.exceptions import ValidationError
from .core.logging import get_logger, log_structured
from .core.models import (
    ErrorKind,
    ExecutionOutcome,
    HistoryRecord,
    RequestDescriptor,
)
from .execution import (
    AiohttpTransport,
    DirectExecutor,
    IsolatedExecutor,
    SessionIsolatedContext,
    StrategySelector,
    StrategyType,
    Transport,
    run_windowed,
)
from .history import HistoryStore, KeyValueStorage
from .processors import EncodedBody, ProcessorRegistry, create_default_registry
from .security import CapabilityProvider, SecurityGate

logger = get_logger(__name__)


def prepare_request(
    request: RequestDescriptor, encoded: EncodedBody
) -> RequestDescriptor:
    """
    Build the wire-ready copy of a request.

    The encoded body replaces any fields, and processor headers override
    user headers of the same name regardless of case.
    """
    overridden = {name.lower() for name in encoded.headers}
    headers: Dict[str, str] = {
        name: value
        for name, value in request.headers.items()
        if name.lower() not in overridden
    }
    headers.update(encoded.headers)
    return request.model_copy(
        update={
            "headers": headers,
            "raw_body": encoded.body or None,
            "fields": None,
        }
    )


class RequestOrchestrator:
    """
    Runs submitted requests through validation, caching and execution.

    ``submit`` always returns a complete ExecutionOutcome. Only cancellation
    propagates to the caller.
    """

    def __init__(
        self,
        gate: SecurityGate,
        registry: ProcessorRegistry,
        selector: StrategySelector,
        history: HistoryStore,
        cache: Optional[ResponseCache] = None,
        record_rejections: bool = False,
        window_size: int = 5,
        transport: Optional[Transport] = None,
    ) -> None:
        self.gate = gate
        self.registry = registry
        self.selector = selector
        self.history = history
        self.cache = cache
        self.record_rejections = record_rejections
        self.window_size = window_size
        self.transport = transport

    async def submit(self, request: RequestDescriptor) -> ExecutionOutcome:
        """
        Validate, execute and record one request.

        Args:
            request: User-authored request

        Returns:
            Outcome of the execution, or a ValidationError outcome if the
            request was rejected before reaching the network
        """
        try:
            return await self._submit(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error submitting request {request.id}")
            return ExecutionOutcome.failure(
                request_id=request.id,
                error_kind=ErrorKind.UNKNOWN,
                message=f"Unexpected error: {e}",
            )

    async def _submit(self, request: RequestDescriptor) -> ExecutionOutcome:
        verdict = self.gate.validate(request)
        if not verdict:
            outcome = ExecutionOutcome.failure(
                request_id=request.id,
                error_kind=ErrorKind.VALIDATION_ERROR,
                message=verdict.reason,
            )
            if self.record_rejections:
                await self.history.record(request)
                await self.history.complete(request.id, outcome)
            return outcome

        await self.history.record(request)
        try:
            outcome = await self._execute(request)
        except asyncio.CancelledError:
            await self.history.complete(
                request.id,
                ExecutionOutcome.failure(
                    request_id=request.id,
                    error_kind=ErrorKind.UNKNOWN,
                    message="Request was cancelled",
                ),
            )
            raise
        except Exception as e:
            logger.exception(f"Executor failed for request {request.id}")
            outcome = ExecutionOutcome.failure(
                request_id=request.id,
                error_kind=ErrorKind.UNKNOWN,
                message=f"Unexpected error: {e}",
            )

        await self.history.complete(request.id, outcome)
        log_structured(
            logger,
            logging.INFO,
            f"{request.method.value} {request.url} finished",
            request_id=request.id,
            success=outcome.success,
            status=outcome.status,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    async def _execute(self, request: RequestDescriptor) -> ExecutionOutcome:
        key = None
        if self.cache is not None:
            key = self.cache.fingerprint(request)
            entry = self.cache.get(key)
            if entry is not None:
                logger.debug(f"Cache hit for request {request.id}")
                return entry.outcome.model_copy(update={"request_id": request.id})

        try:
            encoded = self.registry.encode(request)
        except ValidationError as e:
            return ExecutionOutcome.failure(
                request_id=request.id,
                error_kind=ErrorKind.VALIDATION_ERROR,
                message=e.message,
            )

        prepared = prepare_request(request, encoded)
        outcome = await self.selector.select(prepared).execute(prepared)

        if self.cache is not None and outcome.success:
            self.cache.put(key, outcome)
        return outcome

    async def submit_batch(
        self, requests: Sequence[RequestDescriptor]
    ) -> List[ExecutionOutcome]:
        """Submit requests in bounded windows, keeping input order."""
        return await run_windowed(requests, self.submit, self.window_size)

    async def get_history(self) -> List[HistoryRecord]:
        """Recorded requests, newest first."""
        return await self.history.list()

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    async def close(self) -> None:
        """Flush history and release network resources."""
        await self.history.close()
        if self.transport is not None:
            await self.transport.close()

    async def __aenter__(self) -> "RequestOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_orchestrator(
    config: Optional[CourierConfig] = None,
    storage: Optional[KeyValueStorage] = None,
    capabilities: Optional[CapabilityProvider] = None,
    registry: Optional[ProcessorRegistry] = None,
    transport: Optional[Transport] = None,
) -> RequestOrchestrator:
    """
    Build an orchestrator with the default component wiring.

    Args:
        config: Configuration (uses the global config if None)
        storage: History storage (built from ``config.history`` if None)
        capabilities: Capability provider consulted by the gate
        registry: Processor registry (built-in processors if None)
        transport: Shared transport for direct execution

    Returns:
        Ready-to-use RequestOrchestrator
    """
    config = config or get_config()
    execution = config.execution
    transport = transport or AiohttpTransport(
        verify_ssl=execution.verify_ssl,
        follow_redirects=execution.follow_redirects,
    )

    def isolated_context() -> SessionIsolatedContext:
        return SessionIsolatedContext(
            verify_ssl=execution.verify_ssl,
            follow_redirects=execution.follow_redirects,
        )

    selector = StrategySelector(
        {
            StrategyType.DIRECT: lambda: DirectExecutor(
                transport, timeout_ms=execution.timeout_ms
            ),
            StrategyType.ISOLATED: lambda: IsolatedExecutor(
                isolated_context, timeout_ms=execution.timeout_ms
            ),
        }
    )

    cache = None
    if config.cache.enabled:
        cache = ResponseCache(
            ttl_seconds=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        )

    return RequestOrchestrator(
        gate=SecurityGate(config.gate, capabilities),
        registry=registry or create_default_registry(),
        selector=selector,
        history=HistoryStore.from_config(config.history, storage),
        cache=cache,
        record_rejections=config.gate.record_rejections,
        window_size=execution.batch_window_size,
        transport=transport,
    )
