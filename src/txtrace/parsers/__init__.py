"""
Parsers module for txtrace.

This module contains the payload decoders used while walking a trace:
- Revert payloads (Error(string), Panic(uint256), custom errors)
- ABI call / return / custom error decoding and value formatting
"""

from .revert import (
    DecodedError,
    ErrorKind,
    ERROR_SELECTOR,
    PANIC_SELECTOR,
    PANIC_REASONS,
    decode_revert_data,
)
from .abi import (
    ContractABI,
    DecodedFunction,
    DecodedParam,
    as_contract_abi,
    decode_function_call,
    decode_function_result,
    format_abi_type,
    format_decoded_input,
    format_value,
    function_signature,
    load_abi,
    selector_for,
)

__all__ = [
    # Revert
    'DecodedError',
    'ErrorKind',
    'ERROR_SELECTOR',
    'PANIC_SELECTOR',
    'PANIC_REASONS',
    'decode_revert_data',
    # ABI
    'ContractABI',
    'DecodedFunction',
    'DecodedParam',
    'as_contract_abi',
    'decode_function_call',
    'decode_function_result',
    'format_abi_type',
    'format_decoded_input',
    'format_value',
    'function_signature',
    'load_abi',
    'selector_for',
]
