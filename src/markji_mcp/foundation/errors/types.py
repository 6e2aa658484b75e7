"""Failure payloads for batch outcomes.

A failed item carries an ErrorTrace in its Err. The message is kept exactly
as the remote side phrased it, next to its classification.
"""

from __future__ import annotations

import traceback
from typing import Any, Union

from pydantic import BaseModel, ConfigDict

from .errors import TRANSIENT_CODES, classify_exception

JsonValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]
JsonDict = dict[str, Any]


class ErrorTrace(BaseModel):
    """Classified failure of one operation.

    Attributes:
        message: Failure message, verbatim
        error_code: ErrorCode value, or None when unclassified
        status_code: HTTP status if the failure came from a response
        recoverable: Whether the failure class is transient
        operation: Where it happened, e.g. "getCards:2" for the third item
        details: Formatted traceback, only when requested
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: str
    error_code: str | None = None
    status_code: int | None = None
    recoverable: bool = False
    operation: str = ""
    details: str | None = None

    def __str__(self) -> str:
        code = f" [{self.error_code}]" if self.error_code else ""
        where = f" (in {self.operation})" if self.operation else ""
        return f"{self.message}{code}{where}"


def trace_from_exc(exc: BaseException, *, operation: str = "", include_details: bool = False) -> ErrorTrace:
    """ErrorTrace for an exception, keeping its message verbatim."""
    code = classify_exception(exc)
    return ErrorTrace(
        message=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
        error_code=code.value,
        status_code=getattr(exc, "status_code", None),
        recoverable=code in TRANSIENT_CODES,
        operation=operation,
        details="".join(traceback.format_exception(exc)) if include_details else None,
    )
