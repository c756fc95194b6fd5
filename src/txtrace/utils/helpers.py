"""
Hex, stack and memory helpers shared by the trace builders.

Struct-log stacks are ordered bottom to top (the last element is the top of
the stack) and memory is a list of 32-byte words. Every helper here fails
closed: malformed input yields 0 / None instead of an exception.
"""

from typing import Dict, Optional, Sequence

ADDRESS_MASK = (1 << 160) - 1


def strip_0x(value: str) -> str:
    """Remove a leading 0x / 0X prefix."""
    if value[:2] in ('0x', '0X'):
        return value[2:]
    return value


def add_0x(value: str) -> str:
    """Ensure a 0x prefix."""
    if value[:2] in ('0x', '0X'):
        return value
    return '0x' + value


def hex_to_int(value) -> int:
    """Parse a hex word (with or without 0x) into an int, 0 if unparseable."""
    if value is None:
        return 0
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = strip_0x(str(value).strip())
    if not text:
        return 0
    try:
        return int(text, 16)
    except ValueError:
        return 0


def pad_hex32(value: int) -> str:
    """Render an int as a 0x-prefixed, zero padded 32-byte hex word."""
    return '0x' + format(value, '064x')


def stack_item(stack: Sequence[str], index_from_top: int) -> int:
    """Read a stack entry counted from the top (0 = top of stack)."""
    if not stack:
        return 0
    idx = len(stack) - 1 - index_from_top
    if idx < 0 or idx >= len(stack):
        return 0
    return hex_to_int(stack[idx])


def stack_address(stack: Sequence[str], index_from_top: int) -> Optional[str]:
    """Read a stack entry as a lower-case address; None for the zero word."""
    value = stack_item(stack, index_from_top)
    if value == 0:
        return None
    return '0x' + format(value & ADDRESS_MASK, '040x')


def memory_slice(memory: Sequence[str], offset: int, size: int) -> Optional[str]:
    """
    Extract ``size`` bytes at byte ``offset`` from a word-list memory dump.

    The words are concatenated into one hex string and sliced by
    ``offset*2 .. (offset+size)*2``. Returns None when there is no memory or
    nothing to read, ``"0x"`` when the offset lies past the end, and a
    truncated slice when the range runs past the end.
    """
    if not memory or size == 0:
        return None
    joined = ''.join(strip_0x(word) for word in memory)
    start = offset * 2
    end = (offset + size) * 2
    if start >= len(joined):
        return '0x'
    return '0x' + joined[start:min(end, len(joined))]


def storage_lookup(storage: Optional[Dict[str, str]], slot_hex: str) -> Optional[str]:
    """
    Find a slot in a struct-log storage snapshot.

    Tracers disagree on key format, so the bare, 0x-prefixed and
    zero-padded 32-byte variants are tried in turn.
    """
    if not storage:
        return None
    with_prefix = add_0x(slot_hex)
    without_prefix = with_prefix[2:]
    padded_bare = without_prefix.rjust(64, '0')[-64:]
    padded = '0x' + padded_bare
    for key in (without_prefix, with_prefix, slot_hex, padded, padded_bare):
        if key in storage:
            return storage[key]
    return None


def short_address(addr: Optional[str]) -> str:
    """Shorten an address for console output: 0x1234...5678."""
    if not addr:
        return "<unknown>"
    if len(addr) > 10:
        return f"{addr[:6]}...{addr[-4:]}"
    return addr
