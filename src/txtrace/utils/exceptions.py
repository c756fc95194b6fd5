"""
Custom exceptions for txtrace.

This module provides a hierarchy of exceptions for the structural failures
that abort a reconstruction, along with utilities for formatting errors
consistently. Opcode-level decoding problems (an undecodable revert payload,
calldata that matches no ABI entry, a contract without ABI) are not
exceptions: the decoders return None and the builders carry on.
"""

import json
from typing import Any, Dict, Optional


class TxTraceError(Exception):
    """
    Base exception for all txtrace errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        error_code: Optional error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "type": self.error_code,
            "message": self.message,
            **self.details
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ============================================================================
# Trace Input Errors
# ============================================================================

class MalformedTraceError(TxTraceError):
    """Raised when a raw trace document has no usable structLogs sequence."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = {"source": source} if source else {}
        details.update(kwargs)
        super().__init__(message, details, "MalformedInput")


# ============================================================================
# Parsing Errors
# ============================================================================

class ParseError(TxTraceError):
    """Raised when parsing an auxiliary input file fails."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = {"source": source} if source else {}
        details.update(kwargs)
        super().__init__(message, details, "ParseError")


class ABIParseError(ParseError):
    """Raised when an ABI document cannot be understood."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = "ABIParseError"


# ============================================================================
# Error Formatting Utilities
# ============================================================================

def format_error(e: Exception, json_mode: bool = False) -> str:
    """
    Format an exception for display.

    Args:
        e: The exception to format
        json_mode: If True, output as JSON; otherwise use colored text

    Returns:
        Formatted error string
    """
    from txtrace.utils.colors import error

    if isinstance(e, TxTraceError):
        if json_mode:
            return e.to_json()
        return error(e.message)

    if json_mode:
        return json.dumps({
            "error": True,
            "type": type(e).__name__,
            "message": str(e)
        }, indent=2)
    return error(str(e))
