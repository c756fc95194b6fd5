"""
Nested call trace reconstruction.

Walks the struct logs once, keeping an explicit stack of open call frames.
A frame is pushed when a CALL-family (or CREATE) instruction is followed by
a deeper step, and popped as soon as execution comes back to a shallower
depth. Storage accesses and REVERTs become leaf entries of the frame
executing them, REVERT / RETURN payloads are also attached to that frame,
and the frames on the path to the failing frame form the stack trace.

The output layout follows the Tenderly call trace format (``call_type``,
``absolute_position``, ``decoded_input`` ...) so reports produced here can
be compared against Tenderly's.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from txtrace.core.opcodes import CALL_OPS, CREATE_OPS, STORAGE_OPS, call_operands, create_operands
from txtrace.core.raw_trace import StructLog
from txtrace.parsers.abi import ContractABI, DecodedParam, as_contract_abi, format_value
from txtrace.parsers.revert import DecodedError, ErrorKind, decode_revert_data
from txtrace.utils.helpers import (
    memory_slice,
    pad_hex32,
    stack_address,
    stack_item,
    storage_lookup,
    strip_0x,
)
from txtrace.utils.logging import get_logger, log_trace

logger = get_logger('call_trace')

UNVERIFIED = "Unverified"

LEAF_OPS = STORAGE_OPS + ("REVERT",)


@dataclass
class DisplayParam:
    """A decoded argument rendered for display."""
    name: str
    type: str
    value: str
    offset: int = 0


@dataclass
class CallTrace:
    """One call frame, or one storage access leaf."""
    call_type: str
    absolute_position: int
    address: Optional[str]
    from_addr: Optional[str]
    to: Optional[str]
    gas: int
    gas_used: int = 0

    hash: Optional[str] = None
    block_timestamp: Optional[str] = None
    contract_name: Optional[str] = None
    function_name: Optional[str] = None
    function_signature: Optional[str] = None
    function_pc: Optional[int] = None
    function_op: Optional[str] = None
    caller_pc: Optional[int] = None
    caller_op: Optional[str] = None
    value: Optional[str] = None

    input: Optional[str] = None
    decoded_input: Optional[List[DisplayParam]] = None
    output: Optional[str] = None
    decoded_output: Optional[List[DisplayParam]] = None

    error: Optional[str] = None
    error_op: Optional[str] = None
    error_message: Optional[str] = None
    error_absolute_position: Optional[int] = None
    error_hex_data: Optional[str] = None
    decoded_error: Optional[DecodedError] = None
    caused_revert: bool = False

    storage_address: Optional[str] = None
    storage_slot: Optional[str] = None
    storage_value_original: Optional[str] = None
    storage_value_dirty: Optional[str] = None

    calls: List['CallTrace'] = field(default_factory=list)

    @property
    def is_storage_access(self) -> bool:
        return self.call_type in STORAGE_OPS

    @property
    def is_leaf(self) -> bool:
        """Storage accesses and REVERT markers never own calls."""
        return self.call_type in LEAF_OPS

    @property
    def reverted(self) -> bool:
        return self.error is not None

    def walk(self) -> Iterator['CallTrace']:
        """Pre-order traversal of this entry and everything below it."""
        yield self
        for child in self.calls:
            yield from child.walk()


@dataclass
class StackTraceEntry:
    """One frame on the path from the root to the failing frame."""
    contract: Optional[str]
    contract_name: Optional[str]
    name: Optional[str]
    op: str
    error: Optional[str] = None
    error_message: Optional[str] = None
    error_source: bool = False


@dataclass
class CallTraceResult:
    call_trace: CallTrace
    stack_trace: List[StackTraceEntry] = field(default_factory=list)

    @property
    def failing_frame(self) -> Optional[CallTrace]:
        for entry in self.call_trace.walk():
            if entry.caused_revert:
                return entry
        return None


@dataclass
class _Frame:
    trace: CallTrace
    depth: int
    gas_start: int
    storage_context: Optional[str]


AbiSource = Union[ContractABI, List[Dict[str, Any]]]


def to_display_params(params: Sequence[DecodedParam]) -> List[DisplayParam]:
    return [
        DisplayParam(name=p.name, type=p.type, value=p.display(), offset=idx * 32)
        for idx, p in enumerate(params)
    ]


def fallback_input_params(input_data: Optional[str]) -> Optional[List[DisplayParam]]:
    """Without an ABI, read the first word after the selector as a uint256."""
    if not input_data:
        return None
    body = strip_0x(input_data)[8:]
    if len(body) < 64:
        return None
    try:
        word = int(body[:64], 16)
    except ValueError:
        return None
    return [DisplayParam(name="param0", type="uint256", value=format_value(word, "uint256"), offset=0)]


def _contract_name(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        return entry.get('contractName') or entry.get('name')
    return None


class CallTraceBuilder:
    """
    Rebuilds the call tree of a transaction from its struct logs.

    ``abi_map`` maps a contract address to its ABI (a :class:`ContractABI` or
    a raw ABI list) and ``contract_names`` maps an address to a display name
    (a string, or a metadata dict with ``contractName``). Address lookups
    are case-insensitive.
    """

    def __init__(
        self,
        abi_map: Optional[Mapping[str, AbiSource]] = None,
        contract_names: Optional[Mapping[str, Any]] = None,
    ):
        self.abi_map: Dict[str, ContractABI] = {
            addr.lower(): as_contract_abi(abi) for addr, abi in (abi_map or {}).items()
        }
        self.contract_names: Dict[str, str] = {}
        for addr, entry in (contract_names or {}).items():
            name = _contract_name(entry)
            if name:
                self.contract_names[addr.lower()] = name
        for addr, abi in self.abi_map.items():
            if abi.name:
                self.contract_names.setdefault(addr, abi.name)

    def abi_for(self, address: Optional[str]) -> Optional[ContractABI]:
        if not address:
            return None
        return self.abi_map.get(address.lower())

    def name_for(self, address: Optional[str]) -> Optional[str]:
        if not address:
            return None
        return self.contract_names.get(address.lower())

    def build(
        self,
        struct_logs: Sequence[StructLog],
        tx_hash: Optional[str] = None,
        from_addr: Optional[str] = None,
        to_addr: Optional[str] = None,
        input_data: Optional[str] = None,
        block_timestamp: Optional[str] = None,
    ) -> CallTraceResult:
        # Child frames read lower-case addresses off the stack; the root must match.
        from_addr = from_addr.lower() if from_addr else from_addr
        to_addr = to_addr.lower() if to_addr else to_addr
        root = self._make_root(struct_logs, tx_hash, from_addr, to_addr, input_data, block_timestamp)

        if not struct_logs:
            return CallTraceResult(call_trace=root, stack_trace=[])

        root_frame = _Frame(
            trace=root,
            depth=struct_logs[0].depth,
            gas_start=struct_logs[0].gas,
            storage_context=root.to,
        )
        frames: List[_Frame] = [root_frame]
        # storage context -> slot -> value seen before the transaction touched it
        storage_before: Dict[str, Dict[str, str]] = {}
        failing: Optional[CallTrace] = None

        for i, log in enumerate(struct_logs):
            # Returning to a shallower depth closes every frame opened deeper.
            while len(frames) > 1 and log.depth < frames[-1].depth:
                self._close_frame(frames.pop(), struct_logs[i - 1], resumed=log)

            frame = frames[-1]
            next_log = struct_logs[i + 1] if i + 1 < len(struct_logs) else None
            descends = next_log is not None and next_log.depth > log.depth

            if log.op in CALL_OPS and descends:
                frames.append(self._open_call(i, log, next_log, frame))
            elif log.op in CREATE_OPS and descends:
                frames.append(self._open_create(i, log, next_log, frame))
            elif log.op in STORAGE_OPS:
                frame.trace.calls.append(self._storage_access(i, log, frame, storage_before))
            elif log.op == "REVERT":
                frame.trace.calls.append(self._attach_revert(i, log, frame.trace))
                if failing is None:
                    failing = frame.trace
                    failing.caused_revert = True
            elif log.op == "RETURN":
                self._attach_return(log, frame.trace)

        last = struct_logs[-1]
        while len(frames) > 1:
            self._close_frame(frames.pop(), last, resumed=None)
        root.gas_used = max(root_frame.gas_start - last.gas, 0)

        stack_trace = self._stack_trace(root, failing) if failing is not None else []
        logger.debug(
            f"Call trace: {sum(1 for _ in root.walk())} entries, "
            f"{len(stack_trace)} frame(s) on the failure path"
        )
        return CallTraceResult(call_trace=root, stack_trace=stack_trace)

    # ------------------------------------------------------------------
    # Frame construction
    # ------------------------------------------------------------------

    def _make_root(self, struct_logs, tx_hash, from_addr, to_addr, input_data, block_timestamp) -> CallTrace:
        contract_name = self.name_for(to_addr)
        if contract_name is None and not to_addr:
            contract_name = UNVERIFIED

        root = CallTrace(
            call_type="CALL",
            absolute_position=0,
            hash=tx_hash,
            block_timestamp=block_timestamp,
            contract_name=contract_name,
            caller_pc=0,
            caller_op="CALL",
            address=from_addr,
            from_addr=from_addr,
            to=to_addr or from_addr,
            gas=struct_logs[0].gas if struct_logs else 0,
            gas_used=0,
            input=input_data,
        )
        self._decode_input(root, to_addr, input_data)
        return root

    def _decode_input(self, trace: CallTrace, target: Optional[str], input_data: Optional[str]):
        if not input_data:
            return
        abi = self.abi_for(target)
        decoded = abi.decode_function_call(input_data) if abi else None
        if decoded is not None:
            trace.function_name = decoded.name
            trace.function_signature = decoded.signature
            trace.decoded_input = to_display_params(decoded.args)
        else:
            trace.decoded_input = fallback_input_params(input_data)

    def _child(self, i: int, log: StructLog, next_log: StructLog, caller: _Frame) -> CallTrace:
        caller_address = caller.trace.to
        return CallTrace(
            call_type=log.op,
            absolute_position=i + 1,
            address=caller_address,
            from_addr=caller_address,
            to=None,
            gas=next_log.gas,
            function_pc=next_log.pc,
            function_op="JUMPDEST" if next_log.op == "JUMPDEST" else None,
            caller_pc=log.pc,
            caller_op=log.op,
        )

    def _open_call(self, i: int, log: StructLog, next_log: StructLog, caller: _Frame) -> _Frame:
        operands = call_operands(log.op, log.stack)
        trace = self._child(i, log, next_log, caller)
        trace.to = operands.to or caller.trace.to
        trace.value = pad_hex32(operands.value) if operands.value > 0 else None
        trace.contract_name = self.name_for(operands.to)
        if trace.contract_name is None and operands.to is None:
            trace.contract_name = UNVERIFIED
        trace.input = memory_slice(log.memory, operands.in_offset, operands.in_size)
        if operands.to is not None:
            self._decode_input(trace, operands.to, trace.input)
        caller.trace.calls.append(trace)

        # Code runs at the target, but DELEGATECALL / CALLCODE keep the caller's storage.
        if log.op in ("DELEGATECALL", "CALLCODE"):
            storage_context = caller.storage_context
        else:
            storage_context = trace.to

        log_trace(logger, "push %s -> %s at step %d (depth %d)", log.op, trace.to, i, next_log.depth)
        return _Frame(trace=trace, depth=next_log.depth, gas_start=next_log.gas, storage_context=storage_context)

    def _open_create(self, i: int, log: StructLog, next_log: StructLog, caller: _Frame) -> _Frame:
        operands = create_operands(log.op, log.stack)
        trace = self._child(i, log, next_log, caller)
        trace.function_name = "constructor"
        trace.value = pad_hex32(operands.value) if operands.value > 0 else None
        trace.input = memory_slice(log.memory, operands.offset, operands.size)
        caller.trace.calls.append(trace)

        # The new address is only known once the constructor returns.
        placeholder = f"create:{i}"
        trace.to = placeholder
        log_trace(logger, "push %s at step %d (depth %d)", log.op, i, next_log.depth)
        return _Frame(trace=trace, depth=next_log.depth, gas_start=next_log.gas, storage_context=placeholder)

    def _close_frame(self, frame: _Frame, last: StructLog, resumed: Optional[StructLog]):
        """
        Close ``frame``. ``last`` is the last step executed inside it and
        ``resumed`` the caller's next step (None when the trace ends first).
        """
        trace = frame.trace
        if resumed is not None:
            # Gas handed back to the caller, after the final RETURN / REVERT / halt is charged.
            trace.gas_used = max(frame.gas_start - max(last.gas - last.gas_cost, 0), 0)
        else:
            trace.gas_used = max(frame.gas_start - last.gas, 0)
        if trace.call_type in CREATE_OPS:
            # CREATE leaves the new address (0 on failure) on top of the caller's stack.
            created = None
            if resumed is not None and resumed.depth == frame.depth - 1:
                created = stack_address(resumed.stack, 0)
            self._resolve_created_address(trace, frame.storage_context, created)
        log_trace(logger, "pop %s -> %s gas_used=%d", trace.call_type, trace.to, trace.gas_used)

    def _resolve_created_address(self, trace: CallTrace, placeholder: Optional[str], created: Optional[str]):
        for entry in trace.walk():
            for attr in ("address", "from_addr", "to", "storage_address"):
                if getattr(entry, attr) == placeholder:
                    setattr(entry, attr, created)
        if created is not None:
            trace.contract_name = self.name_for(created)

    # ------------------------------------------------------------------
    # Per-step payloads
    # ------------------------------------------------------------------

    def _storage_access(self, i: int, log: StructLog, frame: _Frame, storage_before) -> CallTrace:
        current = frame.trace.to
        context = frame.storage_context
        slot = pad_hex32(stack_item(log.stack, 0))
        seen = storage_before.setdefault(context, {})

        leaf = CallTrace(
            call_type=log.op,
            absolute_position=i,
            address=current,
            from_addr=current,
            to=current,
            gas=log.gas,
            gas_used=log.gas_cost,
            contract_name=self.name_for(current),
            storage_address=context,
            storage_slot=slot,
        )

        if log.op == "SLOAD":
            value = storage_lookup(log.storage, slot)
            if value is not None:
                seen.setdefault(slot, value)
            leaf.storage_value_original = seen.get(slot)
        else:
            original = seen.get(slot) or storage_lookup(log.storage, slot) or pad_hex32(0)
            seen.setdefault(slot, original)
            leaf.storage_value_original = original
            leaf.storage_value_dirty = pad_hex32(stack_item(log.stack, 1))
        return leaf

    def _attach_revert(self, i: int, log: StructLog, trace: CallTrace) -> CallTrace:
        """Record the revert on the executing frame and return its REVERT leaf."""
        data = memory_slice(log.memory, stack_item(log.stack, 0), stack_item(log.stack, 1))
        decoded = decode_revert_data(data) if data and data != '0x' else None

        if decoded is not None and decoded.kind == ErrorKind.CUSTOM_ERROR:
            abi = self.abi_for(trace.to)
            resolved = abi.decode_custom_error(data) if abi else None
            if resolved is not None:
                decoded.custom_error_name = resolved.name
                decoded.custom_error_args = to_display_params(resolved.args)

        trace.error = "Reverted"
        trace.error_op = "REVERT"
        trace.error_absolute_position = i
        trace.error_hex_data = data
        trace.decoded_error = decoded
        if decoded is not None:
            trace.error = decoded.reason or decoded.custom_error_name or "Reverted"
            trace.error_message = (
                decoded.reason
                or decoded.panic_code_hex
                or decoded.custom_error_name
                or decoded.selector
                or "Unknown error"
            )
        log_trace(logger, "revert at step %d in %s: %s", i, trace.to, trace.error)

        return CallTrace(
            call_type="REVERT",
            absolute_position=i,
            address=trace.to,
            from_addr=trace.to,
            to=trace.to,
            gas=log.gas,
            gas_used=log.gas_cost,
            contract_name=trace.contract_name,
            error=trace.error,
            error_op="REVERT",
            error_message=trace.error_message,
            error_absolute_position=i,
            error_hex_data=data,
            decoded_error=decoded,
        )

    def _attach_return(self, log: StructLog, trace: CallTrace):
        data = memory_slice(log.memory, stack_item(log.stack, 0), stack_item(log.stack, 1))
        if not data or data == '0x':
            return
        trace.output = data
        if trace.call_type in CREATE_OPS or not trace.function_name:
            return
        abi = self.abi_for(trace.to)
        if abi is None:
            return
        decoded = abi.decode_function_result(trace.function_name, data, trace.function_signature)
        if decoded is not None:
            trace.decoded_output = to_display_params(decoded)

    # ------------------------------------------------------------------
    # Stack trace
    # ------------------------------------------------------------------

    @staticmethod
    def _stack_trace(root: CallTrace, failing: CallTrace) -> List[StackTraceEntry]:
        path = _path_to(root, failing)
        return [
            StackTraceEntry(
                contract=frame.to,
                contract_name=frame.contract_name,
                name=frame.function_name,
                op=frame.error_op or frame.call_type,
                error=frame.error,
                error_message=frame.error_message,
                error_source=frame is failing,
            )
            for frame in path
        ]


def _path_to(root: CallTrace, target: CallTrace) -> List[CallTrace]:
    """Frames from ``root`` down to ``target`` (matched by identity)."""
    if root is target:
        return [root]
    for child in root.calls:
        if child.is_leaf:
            continue
        path = _path_to(child, target)
        if path:
            return [root] + path
    return []


def parse_call_trace(
    struct_logs: Sequence[StructLog],
    tx_hash: Optional[str] = None,
    from_addr: Optional[str] = None,
    to_addr: Optional[str] = None,
    input_data: Optional[str] = None,
    block_timestamp: Optional[str] = None,
    abi_map: Optional[Mapping[str, AbiSource]] = None,
    contract_names: Optional[Mapping[str, Any]] = None,
) -> CallTraceResult:
    """Build the nested call trace and stack trace for a struct log sequence."""
    builder = CallTraceBuilder(abi_map=abi_map, contract_names=contract_names)
    return builder.build(
        struct_logs,
        tx_hash=tx_hash,
        from_addr=from_addr,
        to_addr=to_addr,
        input_data=input_data,
        block_timestamp=block_timestamp,
    )
