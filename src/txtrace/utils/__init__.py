"""
Utilities module for txtrace.

Provides exception handling, logging, colors, and hex/stack/memory helpers.
"""

from .exceptions import (
    TxTraceError,
    MalformedTraceError,
    ParseError,
    ABIParseError,
    format_error,
)
from .logging import setup_logging, get_logger, logger, TRACE
from .colors import (
    Colors,
    SUPPORTS_COLOR,
    cyan,
    bold, dim,
    error, success, warning, info,
    opcode, address, gas_value, function_name,
)
from .helpers import (
    strip_0x,
    add_0x,
    hex_to_int,
    pad_hex32,
    stack_item,
    stack_address,
    memory_slice,
    storage_lookup,
    short_address,
)

__all__ = [
    # Exceptions
    'TxTraceError',
    'MalformedTraceError',
    'ParseError',
    'ABIParseError',
    # Formatting
    'format_error',
    # Logging
    'setup_logging',
    'get_logger',
    'logger',
    'TRACE',
    # Colors
    'Colors',
    'SUPPORTS_COLOR',
    'cyan',
    'bold', 'dim',
    'error', 'success', 'warning', 'info',
    'opcode', 'address', 'gas_value', 'function_name',
    # Helpers
    'strip_0x',
    'add_0x',
    'hex_to_int',
    'pad_hex32',
    'stack_item',
    'stack_address',
    'memory_slice',
    'storage_lookup',
    'short_address',
]
