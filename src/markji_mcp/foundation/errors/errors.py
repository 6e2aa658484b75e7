"""Error codes, remote-call exceptions, and structured tool errors.

Every failure that crosses the Markji client boundary is a MarkjiError
carrying an ErrorCode, so retry decisions and report rendering never have to
parse messages. Exceptions from elsewhere are classified by pattern.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(StrEnum):
    """Classification of remote and local failures.

    CONFLICT, RATE_LIMITED and SERVER_ERROR are the transient classes the
    default retry policy acts on.
    """
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_PARAMS = "INVALID_PARAMS"
    NOT_FOUND = "NOT_FOUND"
    API_KEY_MISSING = "API_KEY_MISSING"
    API_KEY_INVALID = "API_KEY_INVALID"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    PARSE_ERROR = "PARSE_ERROR"
    REJECTED = "REJECTED"
    UNKNOWN = "UNKNOWN"


# Transient codes retried by default
TRANSIENT_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.CONFLICT,
    ErrorCode.RATE_LIMITED,
    ErrorCode.SERVER_ERROR,
})

_STATUS_CODES: dict[int, ErrorCode] = {
    401: ErrorCode.API_KEY_INVALID,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    429: ErrorCode.RATE_LIMITED,
}


def code_for_status(status: int) -> ErrorCode:
    """Map an HTTP status to an error code."""
    if (code := _STATUS_CODES.get(status)) is not None:
        return code
    if status >= 500:
        return ErrorCode.SERVER_ERROR
    if status >= 400:
        return ErrorCode.INVALID_PARAMS
    return ErrorCode.UNKNOWN


# Substrings of "ExcType message", checked in order
_HINTS: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "conflict": ErrorCode.CONFLICT,
    "ratelimit": ErrorCode.RATE_LIMITED,
    "rate limit": ErrorCode.RATE_LIMITED,
    "too many requests": ErrorCode.RATE_LIMITED,
    "unauthorized": ErrorCode.API_KEY_INVALID,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "parse": ErrorCode.PARSE_ERROR,
    "json": ErrorCode.PARSE_ERROR,
    "decode": ErrorCode.PARSE_ERROR,
    "validation": ErrorCode.INVALID_PARAMS,
    "notfound": ErrorCode.NOT_FOUND,
}


@lru_cache(maxsize=256)
def _code_from_text(text: str) -> ErrorCode:
    lowered = text.lower()
    return next((code for hint, code in _HINTS.items() if hint in lowered), ErrorCode.UNKNOWN)


def classify_exception(exc: BaseException) -> ErrorCode:
    """Error code for any exception: MarkjiError carries its own, others match by name/message."""
    if isinstance(exc, MarkjiError):
        return exc.code
    return _code_from_text(f"{type(exc).__name__} {exc}")


# ═══════════════════════════════════════════════════════════════════════════════
# Exceptions
# ═══════════════════════════════════════════════════════════════════════════════


class MarkjiError(Exception):
    """Base for failures raised by this package."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether the default retry policy would retry this failure."""
        return self.code in TRANSIENT_CODES


class RemoteError(MarkjiError):
    """Failure reported by (or while reaching) the Markji API.

    kind is "response" when the service answered with an unsuccessful
    envelope, "transport" for HTTP errors, timeouts and connection failures.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        status_code: int | None = None,
        kind: Literal["response", "transport"] = "transport",
    ) -> None:
        super().__init__(message, code, status_code=status_code)
        self.kind = kind

    def __repr__(self) -> str:
        return f"RemoteError({self.message!r}, code={self.code.value}, status={self.status_code}, kind={self.kind})"


class BatchSetupError(MarkjiError):
    """A batch could not start, e.g. the initial container listing failed."""

    @classmethod
    def wrap(cls, exc: BaseException, context: str = "") -> Self:
        message = getattr(exc, "message", None) or str(exc)
        err = cls(f"{context}: {message}" if context else message, classify_exception(exc),
                  status_code=getattr(exc, "status_code", None))
        err.__cause__ = exc
        return err


class ConfigurationError(MarkjiError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.API_KEY_MISSING)


# ═══════════════════════════════════════════════════════════════════════════════
# Structured Tool Error
# ═══════════════════════════════════════════════════════════════════════════════


class ToolError(BaseModel):
    """A tool call that failed before or outside the tool's own handling.

    Covers unknown tool names, parameters that fail validation, and
    unexpected exceptions. ``render`` produces the text returned to the agent.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    tool_name: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True
    details: str | None = None

    @classmethod
    def create(
        cls,
        tool_name: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
        details: str | None = None,
    ) -> Self:
        return cls(tool_name=tool_name, message=message, code=code, recoverable=recoverable, details=details)

    @classmethod
    def from_exception(
        cls,
        tool_name: str,
        exc: Exception,
        context: str = "",
        *,
        include_trace: bool = True,
    ) -> Self:
        code = classify_exception(exc)
        text = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        return cls(
            tool_name=tool_name,
            message=f"{context}: {text}" if context else text,
            code=code,
            recoverable=code in TRANSIENT_CODES,
            details="".join(traceback.format_exception(exc)) if include_trace else None,
        )

    def render(self) -> str:
        lines = [f"**Tool Error ({self.tool_name}):** {self.message}"]
        if self.recoverable:
            lines.append("_The failure looks temporary; the same call may succeed if repeated._")
        if self.details:
            lines.append(f"```\n{self.details.rstrip()}\n```")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()
