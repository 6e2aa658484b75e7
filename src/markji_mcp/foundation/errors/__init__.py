"""Unified error handling for markji_mcp.

- ErrorCode: Classification of remote and local failures
- MarkjiError/RemoteError/BatchSetupError/ConfigurationError: Exceptions
- ToolError: Structured errors rendered for the agent
- Result/Ok/Err: Per-item outcome values
- ErrorTrace: Failure payload of a batch outcome
"""

from .errors import (
    TRANSIENT_CODES,
    BatchSetupError,
    ConfigurationError,
    ErrorCode,
    MarkjiError,
    RemoteError,
    ToolError,
    classify_exception,
    code_for_status,
)
from .result import Err, Ok, Result
from .types import ErrorTrace, JsonDict, JsonValue, trace_from_exc

__all__ = [
    # Codes & exceptions
    "ErrorCode", "TRANSIENT_CODES", "classify_exception", "code_for_status",
    "MarkjiError", "RemoteError", "BatchSetupError", "ConfigurationError", "ToolError",
    # Result
    "Result", "Ok", "Err",
    # Failure payloads
    "ErrorTrace", "JsonDict", "JsonValue", "trace_from_exc",
]
