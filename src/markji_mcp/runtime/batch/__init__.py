"""Batch execution core: orchestrator, container resolver, and report.

- run_batch: drive items serially or concurrently with per-item retry
- ContainerResolver: idempotent name -> id resolution scoped to one batch
- BatchReport/Outcome: ordered per-item results with summaries
"""

from .batch import DEFAULT_BATCH_CONFIG, BatchConfig, Scheduling, run_batch
from .report import BatchReport, Outcome, build_report
from .resolver import ContainerResolver, NamedResource

__all__ = [
    "run_batch", "BatchConfig", "Scheduling", "DEFAULT_BATCH_CONFIG",
    "ContainerResolver", "NamedResource",
    "BatchReport", "Outcome", "build_report",
]
