"""
txtrace - EVM transaction trace reconstruction
"""

__version__ = "0.1.0"

# Main entry point
from .cli.main import main

# Core components
from .core import (
    AnalysisConfig,
    CallTrace,
    CallTraceBuilder,
    FailureInfo,
    RawTrace,
    StructLog,
    TraceAnalyzer,
    TraceSerializer,
    TraceTreeBuilder,
    analyze_trace,
    find_failure,
    load_raw_trace,
    parse_call_trace,
    parse_raw_trace,
    parse_struct_logs,
)

# Parsers
from .parsers import (
    ContractABI,
    DecodedError,
    ErrorKind,
    decode_function_call,
    decode_function_result,
    decode_revert_data,
    load_abi,
)

# Utilities
from .utils import (
    Colors,
    error, warning, info, success,
    TxTraceError,
    MalformedTraceError,
    ABIParseError,
)

__all__ = [
    # Version
    '__version__',
    # Main
    'main',
    # Core
    'AnalysisConfig',
    'CallTrace',
    'CallTraceBuilder',
    'FailureInfo',
    'RawTrace',
    'StructLog',
    'TraceAnalyzer',
    'TraceSerializer',
    'TraceTreeBuilder',
    'analyze_trace',
    'find_failure',
    'load_raw_trace',
    'parse_call_trace',
    'parse_raw_trace',
    'parse_struct_logs',
    # Parsers
    'ContractABI',
    'DecodedError',
    'ErrorKind',
    'decode_function_call',
    'decode_function_result',
    'decode_revert_data',
    'load_abi',
    # Utils
    'Colors',
    'error', 'warning', 'info', 'success',
    'TxTraceError',
    'MalformedTraceError',
    'ABIParseError',
]
