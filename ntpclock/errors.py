"""
NTP Clock Error Handling

All error codes and exception classes.
"""

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Clock error codes."""

    # 1xxx - General errors
    UNKNOWN_ERROR = 1000
    INVALID_PARAMETER = 1001

    # 2xxx - Sample source errors
    NTP_RESOLVE_ERROR = 2001
    NTP_NETWORK_ERROR = 2002
    NTP_TIMEOUT = 2003
    NTP_PARSE_ERROR = 2004
    ALL_SERVERS_FAILED = 2005


class ClockError(Exception):
    """Base exception for all clock errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {
            "code": self.code.value,
            "name": self.code.name,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


# ==============================================================================
# General Errors (1xxx)
# ==============================================================================

class InvalidParameterError(ClockError):
    def __init__(self, param: str, message: str = ""):
        msg = f"Invalid parameter: {param}"
        if message:
            msg += f" - {message}"
        super().__init__(ErrorCode.INVALID_PARAMETER, msg, {"parameter": param})


# ==============================================================================
# Sample Source Errors (2xxx)
# ==============================================================================

class NTPResolveError(ClockError):
    def __init__(self, server: str, error: str):
        super().__init__(
            ErrorCode.NTP_RESOLVE_ERROR,
            f"Failed to resolve {server}: {error}",
            {"server": server, "error": error}
        )


class NTPNetworkError(ClockError):
    def __init__(self, server: str, error: str):
        super().__init__(
            ErrorCode.NTP_NETWORK_ERROR,
            f"NTP network error for {server}: {error}",
            {"server": server, "error": error}
        )


class NTPTimeoutError(ClockError):
    def __init__(self, server: str, timeout_sec: float):
        super().__init__(
            ErrorCode.NTP_TIMEOUT,
            f"NTP query timeout after {timeout_sec}s: {server}",
            {"server": server, "timeout_sec": timeout_sec}
        )


class NTPParseError(ClockError):
    def __init__(self, error: str, server: Optional[str] = None):
        details: Dict[str, Any] = {"error": error}
        if server is not None:
            details["server"] = server
        super().__init__(
            ErrorCode.NTP_PARSE_ERROR,
            f"Invalid NTP reply: {error}",
            details
        )


class AllServersFailedError(ClockError):
    def __init__(self, failures: Dict[str, str]):
        super().__init__(
            ErrorCode.ALL_SERVERS_FAILED,
            f"All NTP servers failed ({len(failures)} tried)",
            {"failures": failures}
        )
        self.failures = failures
