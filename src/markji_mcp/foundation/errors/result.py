"""Per-item outcome values.

Every batch item ends as a Result: Ok(value) when its remote call went
through, Err(ErrorTrace) when it did not. A failed item is therefore data in
the report and never an exception escaping the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True, repr=False)
class Result(Generic[T, E]):
    """Either a success payload or a failure payload, tagged by ``success``.

    Build values with ``Ok``/``Err`` rather than calling this directly.

        >>> Ok("card-1").unwrap()
        'card-1'
        >>> Err("gone").ok() is None
        True
    """

    payload: T | E
    success: bool

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success

    def ok(self) -> T | None:
        return self.payload if self.success else None  # type: ignore[return-value]

    def err(self) -> E | None:
        return None if self.success else self.payload  # type: ignore[return-value]

    def unwrap(self) -> T:
        if not self.success:
            raise RuntimeError(f"called unwrap() on {self!r}")
        return self.payload  # type: ignore[return-value]

    def unwrap_err(self) -> E:
        if self.success:
            raise RuntimeError(f"called unwrap_err() on {self!r}")
        return self.payload  # type: ignore[return-value]

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        return f"{'Ok' if self.success else 'Err'}({self.payload!r})"


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    return Result(value, True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    return Result(error, False)

