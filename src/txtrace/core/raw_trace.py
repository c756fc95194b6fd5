"""
Raw debug trace normalization.

``debug_traceTransaction`` output arrives either as the full JSON-RPC
envelope ``{"jsonrpc", "id", "result": {gas, failed, returnValue, structLogs}}``
or as the bare result object. Depending on the node (or the tool that
exported the file) numeric fields are JSON numbers or hex strings. This
module turns both shapes into a canonical list of :class:`StructLog`.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from txtrace.utils.exceptions import MalformedTraceError
from txtrace.utils.helpers import add_0x, strip_0x
from txtrace.utils.logging import get_logger

logger = get_logger('raw_trace')


@dataclass(frozen=True)
class StructLog:
    """One executed instruction, as reported by the struct logger."""
    pc: int
    op: str
    gas: int
    gas_cost: int
    depth: int
    stack: Tuple[str, ...] = ()
    memory: Tuple[str, ...] = ()
    storage: Dict[str, str] = field(default_factory=dict, hash=False)
    error: Optional[str] = None

    def format_stack(self, max_items: int = 3) -> str:
        """Format the top of the stack for display."""
        if not self.stack:
            return "[empty]"

        items = []
        for i, val in enumerate(reversed(self.stack[-max_items:])):
            if len(val) > 10:
                display = f"0x{strip_0x(val).lstrip('0')[:4] or '0'}..."
            else:
                display = val
            items.append(f"[{i}] {display}")

        if len(self.stack) > max_items:
            items.append(f"... +{len(self.stack) - max_items} more")

        return " ".join(items)


@dataclass
class RawTrace:
    """Normalized trace result."""
    gas: int
    return_value: str
    struct_logs: List[StructLog]
    failed: Optional[bool] = None


def to_uint(value: Any) -> int:
    """
    Coerce a numeric trace field to an unsigned int.

    Accepts native ints and hex strings with or without 0x (strings are
    always read as hex). Anything absent, negative or unparseable is 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value >= 0 else 0
    if isinstance(value, float):
        return int(value) if value >= 0 and value.is_integer() else 0
    text = strip_0x(str(value).strip())
    if not text:
        return 0
    try:
        return int(text, 16)
    except ValueError:
        return 0


def normalize_storage(storage: Any) -> Dict[str, str]:
    """Make every storage key and value 0x-prefixed (case is left as-is)."""
    if not isinstance(storage, dict):
        return {}
    out = {}
    for key, value in storage.items():
        out[add_0x(str(key))] = add_0x(value) if isinstance(value, str) else '0x' + str(value)
    return out


def _word_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value)


def normalize_struct_log(raw: Dict[str, Any]) -> StructLog:
    """Convert a single raw struct log into a :class:`StructLog`."""
    error = raw.get('error')
    if error is not None and not isinstance(error, str):
        error = json.dumps(error) if isinstance(error, (dict, list)) else str(error)
    return StructLog(
        pc=to_uint(raw.get('pc')),
        op=str(raw.get('op', '')),
        gas=to_uint(raw.get('gas')),
        gas_cost=to_uint(raw.get('gasCost')),
        depth=to_uint(raw.get('depth')),
        stack=_word_list(raw.get('stack')),
        memory=_word_list(raw.get('memory')),
        storage=normalize_storage(raw.get('storage')),
        error=error,
    )


def extract_result(document: Any) -> Dict[str, Any]:
    """Return the object holding ``structLogs`` from an envelope or a bare result."""
    if not isinstance(document, dict):
        raise MalformedTraceError(
            f"Invalid raw trace: expected a JSON object, got {type(document).__name__}"
        )
    result = document.get('result')
    if isinstance(result, dict) and isinstance(result.get('structLogs'), list):
        return result
    if isinstance(document.get('structLogs'), list):
        return document
    if 'error' in document and result is None:
        raise MalformedTraceError(
            "Invalid raw trace: RPC returned an error instead of a result",
            rpc_error=document['error'],
        )
    raise MalformedTraceError("Invalid raw trace: missing result.structLogs or structLogs")


def parse_raw_trace(document: Any) -> RawTrace:
    """Parse a raw trace document (envelope or bare result) into a :class:`RawTrace`."""
    result = extract_result(document)
    struct_logs = []
    for i, entry in enumerate(result['structLogs']):
        if not isinstance(entry, dict):
            raise MalformedTraceError(f"Invalid raw trace: structLogs[{i}] is not an object")
        struct_logs.append(normalize_struct_log(entry))

    return_value = result.get('returnValue')
    if not isinstance(return_value, str) or not return_value:
        return_value = '0x'
    failed = result.get('failed')

    logger.debug(f"Normalized {len(struct_logs)} struct logs (gas={to_uint(result.get('gas'))})")
    return RawTrace(
        gas=to_uint(result.get('gas')),
        return_value=return_value,
        struct_logs=struct_logs,
        failed=failed if isinstance(failed, bool) else None,
    )


def parse_raw_trace_json(text: str) -> RawTrace:
    """Parse raw trace JSON text."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedTraceError(f"Invalid raw trace: not valid JSON ({e})")
    return parse_raw_trace(document)


def load_raw_trace(path: str) -> RawTrace:
    """Read and parse a raw trace JSON file (trace.json, RPC dump, fixture)."""
    try:
        with open(path, 'r') as f:
            text = f.read()
    except OSError as e:
        raise MalformedTraceError(f"Could not read trace file {path}: {e}", source=path)
    try:
        return parse_raw_trace_json(text)
    except MalformedTraceError as e:
        e.details.setdefault("source", path)
        raise
