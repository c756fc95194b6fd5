"""
Generic trace tree.

Single forward pass over the struct logs that groups steps by call depth:
every exposed node is attached to whichever node last occupied depth-1.
This is cheap and good enough for statistics (opcode frequencies, gas per
opcode, deepest revert) but it does not follow true call-stack discipline,
so a non-monotonic depth sequence can misattach children. Use
:mod:`txtrace.core.call_trace` when exact frame ownership matters.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from txtrace.core.opcodes import (
    CALL_OPS,
    CREATE_OPS,
    INTERESTING_OPS,
    INTERNAL,
    LOG_OPS,
    OpCategory,
    call_operands,
    classify_op,
    create_operands,
)
from txtrace.core.raw_trace import StructLog
from txtrace.parsers.revert import DecodedError, decode_revert_data
from txtrace.utils.helpers import (
    memory_slice,
    pad_hex32,
    stack_address,
    stack_item,
    storage_lookup,
)
from txtrace.utils.logging import get_logger, log_trace

logger = get_logger('trace_tree')


@dataclass
class TraceNode:
    """One step of the generic tree."""
    id: str
    type: str
    op: str
    depth: int
    step_index: int
    pc: int
    gas_before: int
    gas_after: int
    gas_cost: int
    parent_id: Optional[str] = None
    children: List['TraceNode'] = field(default_factory=list)
    error: Optional[str] = None

    # Call context (CALL family / CREATE)
    from_addr: Optional[str] = None
    to: Optional[str] = None
    value: Optional[str] = None
    input: Optional[str] = None
    output: Optional[str] = None

    # Storage (SLOAD / SSTORE)
    storage_slot: Optional[str] = None
    storage_value: Optional[str] = None

    # Events (LOG0-LOG4)
    event_topics: Optional[List[str]] = None
    event_data: Optional[str] = None

    decoded_error: Optional[DecodedError] = None

    @property
    def category(self) -> OpCategory:
        return classify_op(self.op)


@dataclass
class TraceTreeResult:
    nodes: List[TraceNode]
    roots: List[TraceNode]
    max_depth: int
    total_steps: int
    total_gas_cost: int
    op_counts: Dict[str, int]

    def get_node(self, node_id: str) -> Optional[TraceNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class TraceTreeBuilder:
    """
    Builds a :class:`TraceTreeResult` from normalized struct logs.

    By default only "interesting" opcodes (calls, creates, storage, logs,
    control flow) become nodes. Dropped opcodes still count towards the
    statistics and still occupy the per-depth table, so deeper nodes keep
    a coherent ancestor chain.
    """

    def __init__(self, include_internal_ops: bool = False):
        self.include_internal_ops = include_internal_ops

    def build(self, struct_logs: Sequence[StructLog]) -> TraceTreeResult:
        nodes: List[TraceNode] = []
        roots: List[TraceNode] = []
        op_counts: Dict[str, int] = {}
        last_by_depth: Dict[int, str] = {}
        exposed: Dict[str, TraceNode] = {}
        ghost_parents: Dict[str, Optional[str]] = {}

        max_depth = 0
        total_gas_cost = 0

        for i, log in enumerate(struct_logs):
            gas_after = log.gas
            if i == 0:
                gas_before = gas_after + log.gas_cost
            else:
                prev = struct_logs[i - 1]
                gas_before = prev.gas + prev.gas_cost
            gas_cost = max(gas_before - gas_after, 0)

            node_type = log.op if log.op in INTERESTING_OPS else INTERNAL
            parent_id = self._resolve_parent(last_by_depth.get(log.depth - 1), exposed, ghost_parents)

            max_depth = max(max_depth, log.depth)
            op_counts[log.op] = op_counts.get(log.op, 0) + 1

            if node_type == INTERNAL and not self.include_internal_ops:
                ghost_id = f"ghost-{i}-{log.depth}-{log.op}"
                ghost_parents[ghost_id] = parent_id
                last_by_depth[log.depth] = ghost_id
                continue

            node = TraceNode(
                id=f"{i}-{log.depth}-{log.op}",
                type=node_type,
                op=log.op,
                depth=log.depth,
                step_index=i,
                pc=log.pc,
                gas_before=gas_before,
                gas_after=gas_after,
                gas_cost=gas_cost,
                parent_id=parent_id,
                error=log.error,
            )
            self._enrich(node, log)
            if parent_id is not None and log.op in CALL_OPS + CREATE_OPS:
                node.from_addr = self._caller_address(exposed[parent_id])

            if parent_id is not None:
                exposed[parent_id].children.append(node)
            else:
                roots.append(node)

            nodes.append(node)
            exposed[node.id] = node
            last_by_depth[log.depth] = node.id
            total_gas_cost += gas_cost
            log_trace(logger, "step %d: %s depth=%d parent=%s", i, log.op, log.depth, parent_id)

        logger.debug(
            f"Generic tree: {len(nodes)} nodes, {len(roots)} roots, max depth {max_depth}"
        )
        return TraceTreeResult(
            nodes=nodes,
            roots=roots,
            max_depth=max_depth,
            total_steps=len(struct_logs),
            total_gas_cost=total_gas_cost,
            op_counts=op_counts,
        )

    @staticmethod
    def _resolve_parent(
        candidate: Optional[str],
        exposed: Dict[str, TraceNode],
        ghost_parents: Dict[str, Optional[str]],
    ) -> Optional[str]:
        # A dropped step cannot own children: climb to its nearest exposed ancestor.
        while candidate is not None and candidate not in exposed:
            candidate = ghost_parents.get(candidate)
        return candidate

    @staticmethod
    def _caller_address(parent: TraceNode) -> Optional[str]:
        """Address a nested call is made from, given the call node enclosing it."""
        if parent.op in ("DELEGATECALL", "CALLCODE"):
            # Code borrowed from `to` runs on behalf of the delegating contract.
            return parent.from_addr
        if parent.op in CALL_OPS:
            return parent.to
        return None

    def _enrich(self, node: TraceNode, log: StructLog):
        """Opcode specific details read from the step's stack / memory / storage."""
        op = log.op
        if op == "SLOAD":
            node.storage_slot = hex(stack_item(log.stack, 0))
            node.storage_value = storage_lookup(log.storage, node.storage_slot)
        elif op == "SSTORE":
            node.storage_slot = hex(stack_item(log.stack, 0))
            node.storage_value = hex(stack_item(log.stack, 1))
        elif op in CALL_OPS:
            operands = call_operands(op, log.stack)
            node.to = operands.to
            node.value = hex(operands.value) if operands.value else None
            node.input = memory_slice(log.memory, operands.in_offset, operands.in_size)
        elif op in CREATE_OPS:
            operands = create_operands(op, log.stack)
            node.value = hex(operands.value) if operands.value else None
            node.input = memory_slice(log.memory, operands.offset, operands.size)
        elif op in LOG_OPS:
            num_topics = int(op[-1])
            node.event_data = memory_slice(log.memory, stack_item(log.stack, 0), stack_item(log.stack, 1)) or '0x'
            node.event_topics = [pad_hex32(stack_item(log.stack, 2 + j)) for j in range(num_topics)]
        elif op == "REVERT":
            revert_data = memory_slice(log.memory, stack_item(log.stack, 0), stack_item(log.stack, 1))
            if revert_data and revert_data != '0x':
                node.input = revert_data
                node.decoded_error = decode_revert_data(revert_data)
        elif op == "RETURN":
            return_data = memory_slice(log.memory, stack_item(log.stack, 0), stack_item(log.stack, 1))
            if return_data and return_data != '0x':
                node.output = return_data
        elif op == "SELFDESTRUCT":
            node.to = stack_address(log.stack, 0)


def parse_struct_logs(struct_logs: Sequence[StructLog], include_internal_ops: bool = False) -> TraceTreeResult:
    """Build the generic trace tree for a struct log sequence."""
    return TraceTreeBuilder(include_internal_ops=include_internal_ops).build(struct_logs)
