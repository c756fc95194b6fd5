"""
Core module for txtrace.

This module contains the trace reconstruction logic:
- Raw trace normalization (RawTrace, StructLog)
- GenericTraceTreeBuilder: depth-indexed tree for statistics
- CallTraceBuilder: nested call trace and stack trace
- find_failure: deepest revert in the generic tree
- TraceAnalyzer: runs the whole pipeline
- TraceSerializer: serializes reports to JSON
"""

from .raw_trace import (
    RawTrace,
    StructLog,
    load_raw_trace,
    parse_raw_trace,
    parse_raw_trace_json,
)
from .opcodes import OpCategory, classify_op
from .trace_tree import TraceNode, TraceTreeBuilder, TraceTreeResult, parse_struct_logs
from .call_trace import (
    CallTrace,
    CallTraceBuilder,
    CallTraceResult,
    DisplayParam,
    StackTraceEntry,
    parse_call_trace,
)
from .failure import FailureInfo, find_failure
from .addresses import collect_contract_addresses
from .summary import TransactionSummary, build_transaction_summary
from .analyzer import AnalysisConfig, TraceAnalyzer, TraceMetadata, TraceReport, analyze_trace
from .serializer import TraceSerializer

__all__ = [
    'RawTrace',
    'StructLog',
    'load_raw_trace',
    'parse_raw_trace',
    'parse_raw_trace_json',
    'OpCategory',
    'classify_op',
    'TraceNode',
    'TraceTreeBuilder',
    'TraceTreeResult',
    'parse_struct_logs',
    'CallTrace',
    'CallTraceBuilder',
    'CallTraceResult',
    'DisplayParam',
    'StackTraceEntry',
    'parse_call_trace',
    'FailureInfo',
    'find_failure',
    'collect_contract_addresses',
    'TransactionSummary',
    'build_transaction_summary',
    'AnalysisConfig',
    'TraceAnalyzer',
    'TraceMetadata',
    'TraceReport',
    'analyze_trace',
    'TraceSerializer',
]
