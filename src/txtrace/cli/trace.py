"""
Trace command implementation.

Reconstructs the call trace of a transaction from a saved
``debug_traceTransaction`` result and prints it as a call tree (or JSON),
followed by the stack trace of the failing frame.
"""

from typing import List, Optional

from txtrace.core.analyzer import AnalysisConfig, TraceAnalyzer, TraceReport
from txtrace.core.call_trace import CallTrace, DisplayParam, StackTraceEntry
from txtrace.core.serializer import TraceSerializer
from txtrace.core.trace_tree import TraceNode, TraceTreeResult
from txtrace.cli.common import (
    handle_command_error,
    load_abi_files,
    load_contract_names,
    load_transaction_file,
    normalize_address,
    normalize_hex_data,
)
from txtrace.utils.colors import (
    address,
    bold,
    cyan,
    dim,
    error,
    function_name,
    gas_value,
    info,
    opcode,
    success,
    warning,
)
from txtrace.utils.exceptions import TxTraceError
from txtrace.utils.helpers import hex_to_int, short_address
from txtrace.utils.logging import logger

SEPARATOR = "-" * 60
TOP_OPCODES = 10


def trace_command(args) -> int:
    """
    Execute the trace command.

    Args:
        args: Parsed command arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)

    try:
        report = _analyze(args)
    except (TxTraceError, ValueError) as e:
        logger.debug(f"trace failed: {e}")
        return handle_command_error(e, json_mode)

    if json_mode:
        print(TraceSerializer().to_json(report, include_tree=getattr(args, 'tree', False)))
        return 0

    print_call_trace(report)
    print_stack_trace(report.call_trace.stack_trace)
    if getattr(args, 'tree', False):
        print_generic_tree(report.tree)
        print_failure(report)
    return 0


def _analyze(args) -> TraceReport:
    abi_map = load_abi_files(getattr(args, 'abi', None))
    contracts_file = getattr(args, 'contracts', None)
    contract_names = load_contract_names(contracts_file) if contracts_file else {}

    tx = receipt = block = None
    if getattr(args, 'transaction', None):
        tx, receipt, block = load_transaction_file(args.transaction)

    from_addr = normalize_address(args.from_addr).lower() if getattr(args, 'from_addr', None) else None
    to_addr = normalize_address(args.to_addr).lower() if getattr(args, 'to_addr', None) else None
    input_data = normalize_hex_data(args.input) if getattr(args, 'input', None) else None

    config = AnalysisConfig(
        include_internal_ops=getattr(args, 'include_internal', False),
        decode_abi=not getattr(args, 'no_decode', False),
    )
    analyzer = TraceAnalyzer(config=config, abi_map=abi_map, contract_names=contract_names)
    return analyzer.analyze(
        args.trace_file,
        tx_hash=getattr(args, 'tx_hash', None),
        from_addr=from_addr,
        to_addr=to_addr,
        input_data=input_data,
        block_timestamp=getattr(args, 'timestamp', None),
        tx=tx,
        receipt=receipt,
        block=block,
    )


# ============================================================================
# Call trace
# ============================================================================

def _format_params(params: Optional[List[DisplayParam]]) -> str:
    if not params:
        return ""
    return ", ".join(f"{p.name} = {p.value}" for p in params)


def format_frame_title(trace: CallTrace) -> str:
    """``Contract::function(args)`` for a call frame."""
    contract = trace.contract_name or short_address(trace.to)
    if trace.function_name:
        name = trace.function_name
    elif trace.input and len(trace.input) >= 10:
        name = trace.input[:10]
    else:
        name = "fallback"
    return f"{contract}::{function_name(name)}({_format_params(trace.decoded_input)})"


def _compact_word(word: Optional[str]) -> str:
    if word is None:
        return "?"
    return hex(hex_to_int(word))


def _print_leaf(leaf: CallTrace, indent: str):
    if leaf.call_type == "SLOAD":
        print(f"{indent}   {opcode('SLOAD')}  slot {_compact_word(leaf.storage_slot)} "
              f"= {_compact_word(leaf.storage_value_original)}")
    elif leaf.call_type == "SSTORE":
        print(f"{indent}   {opcode('SSTORE')} slot {_compact_word(leaf.storage_slot)} "
              f"{_compact_word(leaf.storage_value_original)} -> {_compact_word(leaf.storage_value_dirty)}")
    elif leaf.call_type == "REVERT":
        print(f"{indent}   {opcode('REVERT')} {error(leaf.error_message or leaf.error)}")


def _print_frame(trace: CallTrace, level: int, counter: List[int]):
    indent = "  " * level
    index = counter[0]
    counter[0] += 1

    call_type = trace.call_type
    if trace.contract_name and trace.contract_name != "Unverified":
        call_type_display = success(f"[{call_type}]")
    else:
        call_type_display = warning(f"[{call_type}] [non-verified]")

    value_info = f" {dim(f'[value: {hex_to_int(trace.value)}]')}" if trace.value else ""
    gas_info = dim(f"gas: {gas_value(trace.gas_used)}")
    revert_indicator = f" {error('!!!')}" if trace.caused_revert else ""
    print(f"{indent}#{index} {format_frame_title(trace)}{value_info} {call_type_display} {gas_info}{revert_indicator}")

    if trace.call_type in ("CREATE", "CREATE2") and trace.to:
        print(f"{indent}    {success('deployed at:')} {address(trace.to)}")
    if trace.decoded_output:
        print(f"{indent}    {dim('returns:')} {cyan(_format_params(trace.decoded_output))}")
    if trace.error and not trace.caused_revert:
        print(f"{indent}    {dim('reverted:')} {trace.error}")

    for child in trace.calls:
        if child.is_leaf:
            _print_leaf(child, indent)
        else:
            _print_frame(child, level + 1, counter)


def print_call_trace(report: TraceReport):
    """Print the nested call trace with transaction header."""
    root = report.call_trace.call_trace
    print(f"\n{bold('Call Trace:')} {info(root.hash or '<unknown>')}")
    if root.to:
        print(f"{dim('Contract:')} {address(root.to)}")
    print(f"{dim('Gas used:')} {gas_value(root.gas_used)}")
    print(f"{dim('Steps:')} {report.metadata.total_steps}")

    if report.success:
        print(f"{dim('Status:')} {success('SUCCESS')}")
    else:
        print(f"{dim('Status:')} {error('REVERTED')}")
        failing = report.call_trace.failing_frame
        if failing is not None and failing.error:
            print(f"{error('Error:')} {failing.error}")

    print(f"\n{bold('Call Stack:')}")
    print(dim(SEPARATOR))
    _print_frame(root, 0, [0])
    print(dim(SEPARATOR))


def print_stack_trace(entries: List[StackTraceEntry]):
    """Print the root-to-failure path, innermost frame last."""
    if not entries:
        return
    print(f"\n{bold('Stack Trace:')}")
    for entry in entries:
        contract = entry.contract_name or short_address(entry.contract)
        name = entry.name or "<unknown>"
        line = f"  at {contract}.{name} ({entry.op}) {dim(entry.contract or '')}"
        if entry.error_source:
            line += f" {error('<- ' + (entry.error_message or entry.error or 'Reverted'))}"
        print(line)


# ============================================================================
# Generic tree
# ============================================================================

def _print_node(node: TraceNode):
    indent = "  " * node.depth
    details = []
    if node.storage_slot is not None:
        details.append(f"slot={node.storage_slot}")
        if node.storage_value is not None:
            details.append(f"value={_compact_word(node.storage_value)}")
    if node.to:
        details.append(f"to={short_address(node.to)}")
    if node.event_topics:
        details.append(f"topics={len(node.event_topics)}")
    if node.decoded_error is not None:
        details.append(error(node.decoded_error.summary()))
    suffix = f" {' '.join(details)}" if details else ""
    print(f"{indent}[{node.step_index}] {opcode(node.op)} {dim(f'gas: {node.gas_cost}')}{suffix}")
    for child in node.children:
        _print_node(child)


def print_generic_tree(tree: TraceTreeResult):
    """Print the depth-indexed tree and the opcode statistics."""
    print(f"\n{bold('Execution Tree:')}")
    print(dim(SEPARATOR))
    for root in tree.roots:
        _print_node(root)
    print(dim(SEPARATOR))
    print(f"{dim('Total steps:')} {tree.total_steps}")
    print(f"{dim('Max depth:')} {tree.max_depth}")
    print(f"{dim('Gas (exposed nodes):')} {gas_value(tree.total_gas_cost)}")
    ranked = sorted(tree.op_counts.items(), key=lambda item: (-item[1], item[0]))[:TOP_OPCODES]
    print(f"{dim('Top opcodes:')} " + ", ".join(f"{op}={count}" for op, count in ranked))


def print_failure(report: TraceReport):
    failure = report.failure
    if failure is None:
        return
    print(f"\n{bold('Deepest revert:')} {failure.failing_node_id}")
    print(f"  {dim('kind:')} {failure.error_kind.value}")
    if failure.decoded_reason is not None:
        print(f"  {dim('reason:')} {failure.decoded_reason}")
    if failure.panic_code is not None:
        print(f"  {dim('panic code:')} {failure.panic_code}")
    if failure.custom_error_selector is not None:
        print(f"  {dim('selector:')} {failure.custom_error_selector}")
    print(f"  {dim('path:')} {' > '.join(failure.failing_path)}")
