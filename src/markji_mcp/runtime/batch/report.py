"""Per-item outcomes and the aggregated batch report.

A report always has exactly one outcome per input item, in input order,
regardless of the order in which items finished.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

from markji_mcp.foundation.errors import ErrorTrace, JsonDict, Result

R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class Outcome(Generic[R]):
    """Terminal state of one batch item.

    Attributes:
        index: Position of the item in the input
        key: Caller-facing identity (card id, chapter name, or index)
        result: Ok(value) or Err(ErrorTrace)
        attempts: Remote attempts made for the item (0 if it failed before the call)
        elapsed_ms: Wall time spent on the item
        exception: Original exception for a failed item
    """
    index: int
    key: str
    result: Result[R, ErrorTrace]
    attempts: int = 0
    elapsed_ms: float = 0.0
    exception: BaseException | None = field(default=None, repr=False, compare=False)

    @property
    def is_ok(self) -> bool: return self.result.is_ok()

    @property
    def is_err(self) -> bool: return self.result.is_err()

    @property
    def value(self) -> R | None: return self.result.ok()

    @property
    def error(self) -> ErrorTrace | None: return self.result.err()

    @property
    def message(self) -> str:
        """Failure message as reported by the remote side, or "" on success."""
        return err.message if (err := self.result.err()) is not None else ""

    def to_dict(self) -> JsonDict:
        base: JsonDict = {"index": self.index, "key": self.key, "ok": self.is_ok, "attempts": self.attempts}
        if (err := self.error) is not None:
            base["error"] = {"message": err.message, "code": err.error_code, "status": err.status_code}
        return base


@dataclass(slots=True)
class BatchReport(Generic[R]):
    """Ordered outcomes with success/failure partition and summaries.

    Example:
        >>> report.summary
        '2 succeeded, 1 failed'
        >>> report.is_error
        True
        >>> report.failed_keys()
        ['card-2']
    """
    outcomes: list[Outcome[R]]
    total_ms: float = 0.0

    @property
    def succeeded(self) -> list[Outcome[R]]: return [o for o in self.outcomes if o.is_ok]

    @property
    def failed(self) -> list[Outcome[R]]: return [o for o in self.outcomes if o.is_err]

    @property
    def succeeded_count(self) -> int: return sum(1 for o in self.outcomes if o.is_ok)

    @property
    def failed_count(self) -> int: return len(self.outcomes) - self.succeeded_count

    @property
    def summary(self) -> str:
        return f"{self.succeeded_count} succeeded, {self.failed_count} failed"

    @property
    def is_error(self) -> bool:
        """True when any item failed. A report-level flag, not a process error."""
        return self.failed_count > 0

    @property
    def all_ok(self) -> bool: return not self.is_error

    def failed_keys(self) -> list[str]:
        """Keys of failed items, for a targeted retry of just the failures."""
        return [o.key for o in self.outcomes if o.is_err]

    def to_dict(self) -> JsonDict:
        return {
            "summary": self.summary,
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "isError": self.is_error,
            "failedKeys": self.failed_keys(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    def render(
        self,
        ok_line: Callable[[Outcome[R]], str],
        err_line: Callable[[Outcome[R]], str],
        *,
        header: str | None = None,
    ) -> str:
        """Render header then one line per outcome, in input order."""
        lines = [header if header is not None else f"Batch operation summary: {self.summary}."]
        lines += [ok_line(o) if o.is_ok else err_line(o) for o in self.outcomes]
        return "\n".join(lines)

    def __len__(self) -> int: return len(self.outcomes)

    def __iter__(self) -> Iterator[Outcome[R]]: return iter(self.outcomes)


def build_report(outcomes: Iterable[Outcome[Any]], total_ms: float = 0.0) -> BatchReport[Any]:
    """Aggregate outcomes into a report ordered by input index."""
    return BatchReport(sorted(outcomes, key=lambda o: o.index), total_ms)
