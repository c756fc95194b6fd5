"""
Revert payload decoding.

Classifies the bytes returned by a REVERT instruction by their leading
4-byte selector:

- ``Error(string)``   (0x08c379a0) -> REVERT with the reason string
- ``Panic(uint256)``  (0x4e487b71) -> PANIC with the panic code
- anything else >= 4 bytes          -> CUSTOM_ERROR with the selector
- shorter payloads                  -> UNKNOWN

Resolving a custom error selector to a name needs the contract ABI and is
done by :meth:`txtrace.parsers.abi.ContractABI.decode_custom_error`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from txtrace.utils.helpers import add_0x, strip_0x

ERROR_SELECTOR = '0x08c379a0'  # Error(string)
PANIC_SELECTOR = '0x4e487b71'  # Panic(uint256)

# Solidity >= 0.8 built-in panic codes
PANIC_REASONS = {
    0x00: "generic compiler inserted panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array encoding",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to uninitialized internal function",
}


class ErrorKind(str, Enum):
    REVERT = "REVERT"
    PANIC = "PANIC"
    CUSTOM_ERROR = "CUSTOM_ERROR"
    UNKNOWN = "UNKNOWN"


@dataclass
class DecodedError:
    """Result of decoding a revert payload."""
    kind: ErrorKind
    reason: Optional[str] = None
    panic_code: Optional[int] = None
    selector: Optional[str] = None
    custom_error_name: Optional[str] = None
    custom_error_args: List[Any] = field(default_factory=list)

    @property
    def panic_code_hex(self) -> Optional[str]:
        if self.panic_code is None:
            return None
        return hex(self.panic_code)

    @property
    def panic_description(self) -> Optional[str]:
        if self.panic_code is None:
            return None
        return PANIC_REASONS.get(self.panic_code)

    def summary(self) -> str:
        """One-line human readable description."""
        if self.kind == ErrorKind.REVERT:
            return self.reason if self.reason is not None else "Reverted"
        if self.kind == ErrorKind.PANIC:
            if self.panic_code is None:
                return "Panic"
            description = self.panic_description
            if description:
                return f"Panic({self.panic_code_hex}): {description}"
            return f"Panic({self.panic_code_hex})"
        if self.kind == ErrorKind.CUSTOM_ERROR:
            return self.custom_error_name or f"Custom error {self.selector}"
        return "Unknown error"


def _decode_error_string(body: str) -> Optional[str]:
    # layout: offset (32 bytes) | length (32 bytes) | data (padded)
    if len(body) < 128:
        return None
    try:
        length = int(body[64:128], 16)
    except ValueError:
        return None
    if length == 0:
        return ""
    string_hex = body[128:128 + length * 2]
    if len(string_hex) % 2:
        string_hex = string_hex[:-1]
    try:
        return bytes.fromhex(string_hex).decode('utf-8', errors='replace')
    except ValueError:
        return ""


def _decode_panic(body: str) -> Optional[int]:
    if len(body) < 64:
        return None
    try:
        return int(body[:64], 16)
    except ValueError:
        return None


def decode_revert_data(data: Optional[str]) -> Optional[DecodedError]:
    """
    Decode a revert payload hex string.

    Returns None when there is no payload at all. Never raises: malformed
    payloads degrade to a partially filled result.
    """
    if not data or strip_0x(data) == '':
        return None

    data = add_0x(data)
    selector = data[:10]
    body = data[10:]

    if selector.lower() == ERROR_SELECTOR:
        return DecodedError(ErrorKind.REVERT, reason=_decode_error_string(body))

    if selector.lower() == PANIC_SELECTOR:
        return DecodedError(ErrorKind.PANIC, panic_code=_decode_panic(body))

    if len(data) >= 10:
        return DecodedError(ErrorKind.CUSTOM_ERROR, selector=selector.lower())

    return DecodedError(ErrorKind.UNKNOWN)
