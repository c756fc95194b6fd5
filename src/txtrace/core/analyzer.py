"""
Trace analysis pipeline.

Normalizes a raw debug trace and runs both reconstructions over it: the
generic tree (statistics and the deepest revert) and the nested call trace
(the primary report). Everything needed to name and decode contracts is
passed in up front, the analyzer itself does no I/O besides reading the
trace when given a path.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set, Union

from txtrace.core.addresses import collect_contract_addresses
from txtrace.core.call_trace import AbiSource, CallTraceBuilder, CallTraceResult
from txtrace.core.failure import FailureInfo, find_failure
from txtrace.core.opcodes import LOG_OPS, STORAGE_OPS
from txtrace.core.raw_trace import RawTrace, load_raw_trace, parse_raw_trace
from txtrace.core.summary import TransactionSummary, build_transaction_summary
from txtrace.core.trace_tree import TraceTreeBuilder, TraceTreeResult
from txtrace.utils.logging import get_logger

logger = get_logger('analyzer')


@dataclass
class AnalysisConfig:
    """Options for :class:`TraceAnalyzer`."""
    include_internal_ops: bool = False
    decode_abi: bool = True


@dataclass
class TraceMetadata:
    total_steps: int
    max_depth: int
    gas: int
    total_gas_cost: int
    return_value: str = '0x'
    failed: Optional[bool] = None
    has_storage_ops: bool = False
    has_events: bool = False


@dataclass
class TraceReport:
    """Everything derived from one transaction trace."""
    metadata: TraceMetadata
    tree: TraceTreeResult
    call_trace: CallTraceResult
    failure: Optional[FailureInfo] = None
    addresses: Set[str] = field(default_factory=set)
    summary: Optional[TransactionSummary] = None

    @property
    def success(self) -> bool:
        if self.summary is not None:
            return self.summary.succeeded
        if self.metadata.failed is not None:
            return not self.metadata.failed
        return self.failure is None


class TraceAnalyzer:
    """Runs the normalizer, both builders and the failure locator."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        abi_map: Optional[Mapping[str, AbiSource]] = None,
        contract_names: Optional[Mapping[str, Any]] = None,
    ):
        self.config = config or AnalysisConfig()
        self.abi_map = dict(abi_map or {})
        self.contract_names = dict(contract_names or {})

    def analyze(
        self,
        trace: Union[RawTrace, Dict[str, Any], str],
        tx_hash: Optional[str] = None,
        from_addr: Optional[str] = None,
        to_addr: Optional[str] = None,
        input_data: Optional[str] = None,
        block_timestamp: Optional[str] = None,
        tx: Optional[Dict[str, Any]] = None,
        receipt: Optional[Dict[str, Any]] = None,
        block: Optional[Dict[str, Any]] = None,
    ) -> TraceReport:
        """
        Analyze a trace.

        ``trace`` is a :class:`RawTrace`, a raw trace document (RPC envelope
        or bare result) or a path to a JSON file. Transaction fields not given
        explicitly are taken from the ``tx`` / ``block`` RPC objects when those
        are supplied.
        """
        raw = self._load(trace)

        if tx:
            tx_hash = tx_hash or tx.get('hash')
            from_addr = from_addr or tx.get('from')
            to_addr = to_addr or tx.get('to')
            input_data = input_data or tx.get('input') or tx.get('data')
        if block and block_timestamp is None:
            block_timestamp = block.get('timestamp')

        struct_logs = raw.struct_logs
        logger.debug(f"Analyzing {len(struct_logs)} steps for tx {tx_hash or '<unknown>'}")

        tree = TraceTreeBuilder(include_internal_ops=self.config.include_internal_ops).build(struct_logs)
        builder = CallTraceBuilder(
            abi_map=self.abi_map if self.config.decode_abi else None,
            contract_names=self.contract_names,
        )
        call_trace = builder.build(
            struct_logs,
            tx_hash=tx_hash,
            from_addr=from_addr,
            to_addr=to_addr,
            input_data=input_data,
            block_timestamp=block_timestamp,
        )
        failure = find_failure(tree.nodes, tree.roots)

        metadata = TraceMetadata(
            total_steps=tree.total_steps,
            max_depth=tree.max_depth,
            gas=raw.gas,
            total_gas_cost=tree.total_gas_cost,
            return_value=raw.return_value,
            failed=raw.failed,
            has_storage_ops=any(op in tree.op_counts for op in STORAGE_OPS),
            has_events=any(op in tree.op_counts for op in LOG_OPS),
        )

        summary = None
        if tx and receipt and block:
            summary = build_transaction_summary(tx, receipt, block)

        return TraceReport(
            metadata=metadata,
            tree=tree,
            call_trace=call_trace,
            failure=failure,
            addresses=collect_contract_addresses(struct_logs, to_addr),
            summary=summary,
        )

    @staticmethod
    def _load(trace: Union[RawTrace, Dict[str, Any], str]) -> RawTrace:
        if isinstance(trace, RawTrace):
            return trace
        if isinstance(trace, str):
            return load_raw_trace(trace)
        return parse_raw_trace(trace)


def analyze_trace(
    trace: Union[RawTrace, Dict[str, Any], str],
    config: Optional[AnalysisConfig] = None,
    abi_map: Optional[Mapping[str, AbiSource]] = None,
    contract_names: Optional[Mapping[str, Any]] = None,
    **tx_fields,
) -> TraceReport:
    """Convenience wrapper around :meth:`TraceAnalyzer.analyze`."""
    analyzer = TraceAnalyzer(config=config, abi_map=abi_map, contract_names=contract_names)
    return analyzer.analyze(trace, **tx_fields)
