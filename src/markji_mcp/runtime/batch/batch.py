"""Batch orchestrator.

Runs a sequence of independent remote operations with:
- Serial or concurrent scheduling, chosen per call
- Retry of transient failures per item
- Optional name -> container resolution before each item, at most once per
  name and batch
- Failure isolation: one item's failure never stops or cancels another

Only setup failures (raised before run_batch is called, such as a failed
container listing) abort a batch. Everything that goes wrong inside an item
becomes that item's Err outcome.

Example:
    >>> report = await run_batch(
    ...     card_ids,
    ...     lambda card_id: client.get_card(deck_id, card_id),
    ...     BatchConfig(scheduling=Scheduling.CONCURRENT, concurrency=8),
    ...     key=str,
    ... )
    >>> report.summary
    '3 succeeded, 0 failed'
"""

from __future__ import annotations

import asyncio
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any, Callable, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from markji_mcp.foundation.errors import Err, Ok, Result, trace_from_exc
from markji_mcp.runtime.observability import get_logger
from markji_mcp.runtime.retry import RetryPolicy, execute_with_retry

from .report import BatchReport, Outcome, build_report

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from .resolver import ContainerResolver

I = TypeVar("I")
R = TypeVar("R")

log = get_logger("markji_mcp.batch")


class Scheduling(StrEnum):
    """How a batch's items are driven.

    CONCURRENT: all items in flight at once (optionally bounded); report
        order still follows input order.
    SERIAL: item i+1 starts only after item i reached a terminal state.
    """
    CONCURRENT = "concurrent"
    SERIAL = "serial"


class BatchConfig(BaseModel):
    """Configuration for one batch run.

    Example:
        >>> config = BatchConfig(scheduling="serial", retry=RetryPolicy(max_attempts=5))
        >>> report = await run_batch(items, handler, config)
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True,
        json_schema_extra={"title": "Batch Configuration", "examples": [{"scheduling": "concurrent", "concurrency": 8}]},
    )

    scheduling: Scheduling = Scheduling.CONCURRENT
    concurrency: Annotated[int | None, Field(ge=1, le=1000)] = None
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    on_item_complete: Callable[[Outcome[Any]], None] | None = Field(default=None, exclude=True)

    def __hash__(self) -> int:
        return hash((self.scheduling, self.concurrency, self.retry))


DEFAULT_BATCH_CONFIG = BatchConfig()


async def run_batch(
    items: Sequence[I],
    handler: Callable[..., Awaitable[R]],
    config: BatchConfig | None = None,
    *,
    resolver: ContainerResolver | None = None,
    target: Callable[[I], str] | None = None,
    key: Callable[[I], str] | None = None,
    label: str = "batch",
) -> BatchReport[R]:
    """Run handler over every item and report each outcome.

    Args:
        items: Uniform work items
        handler: handler(item) -> value, or handler(item, container_id) when
            target is given
        config: Scheduling, concurrency bound and retry policy
        resolver: Container resolver for items that name a container
        target: Extracts the container name from an item
        key: Extracts the reporting key from an item (default: input index)
        label: Batch name for logs and error contexts

    Returns:
        BatchReport with exactly len(items) outcomes in input order
    """
    if target is not None and resolver is None:
        raise ValueError("run_batch: target requires a resolver")
    if not items:
        return BatchReport([], 0.0)

    cfg, start = config or DEFAULT_BATCH_CONFIG, time.perf_counter()
    pre: dict[str, Result[str, Exception]] = {}

    async def resolve_target(name: str) -> str:
        # A failed name stays failed for the rest of the batch
        if (known := pre.get(name)) is not None:
            if known.is_err():
                raise known.unwrap_err()
            return known.unwrap()
        try:
            container_id = await resolver.resolve(name)  # type: ignore[union-attr]
        except Exception as exc:
            pre[name] = Err(exc)
            raise
        pre[name] = Ok(container_id)
        return container_id

    async def run_one(idx: int, item: I) -> Outcome[R]:
        k = key(item) if key else str(idx)
        attempts = 0
        t0 = time.perf_counter()

        async def attempt(*args: Any) -> R:
            nonlocal attempts
            attempts += 1
            return await handler(*args)

        try:
            args: tuple[Any, ...] = (item,)
            if target is not None:
                container_id = await resolve_target(target(item))
                args = (item, container_id)
            value = await execute_with_retry(lambda: attempt(*args), cfg.retry, f"{label}[{k}]")
            outcome: Outcome[R] = Outcome(idx, k, Ok(value), attempts, (time.perf_counter() - t0) * 1000)
            log.debug("item succeeded", batch=label, key=k, attempts=attempts)
        except Exception as exc:
            err = trace_from_exc(exc, operation=f"{label}:{k}")
            outcome = Outcome(idx, k, Err(err), attempts, (time.perf_counter() - t0) * 1000, exc)
            log.warning("item failed", batch=label, key=k, attempts=attempts, code=err.error_code, error=err.message)
        if cfg.on_item_complete:
            try:
                cfg.on_item_complete(outcome)
            except Exception as exc:
                log.exception("on_item_complete raised", batch=label, key=k, error=str(exc))
        return outcome

    log.info("batch started", batch=label, items=len(items), scheduling=cfg.scheduling.value)

    if cfg.scheduling is Scheduling.SERIAL:
        outcomes = [await run_one(i, item) for i, item in enumerate(items)]
    else:
        if target is not None:
            pre = await resolver.resolve_all(target(item) for item in items)  # type: ignore[union-attr]
        sem = asyncio.Semaphore(cfg.concurrency or len(items))

        async def bounded(idx: int, item: I) -> Outcome[R]:
            async with sem:
                return await run_one(idx, item)

        tasks = [asyncio.create_task(bounded(i, item)) for i, item in enumerate(items)]
        try:
            completed = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for t in tasks:
                t.cancel()
            raise
        outcomes = [
            r if isinstance(r, Outcome)
            else Outcome(i, key(items[i]) if key else str(i), Err(trace_from_exc(r, operation=f"{label}:{i}")), 0, 0.0, r)
            for i, r in enumerate(completed)
        ]

    report = build_report(outcomes, (time.perf_counter() - start) * 1000)
    log.info("batch completed", batch=label, succeeded=report.succeeded_count, failed=report.failed_count,
             elapsed_ms=round(report.total_ms, 2))
    return report
