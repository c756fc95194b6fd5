#!/usr/bin/env python3
"""
Main entry point for txtrace

This module serves as the CLI entry point, handling argument parsing
and routing to the appropriate command implementations in the cli/ module.
"""

import os
import sys
import argparse

from txtrace.utils.logging import setup_logging

from .trace import trace_command

LOG_FILE_ENV = 'TXTRACE_LOG_FILE'


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='txtrace - EVM transaction trace reconstruction')
    parser.add_argument('--version', '-v', action='version', version='%(prog)s 0.1.0')

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.required = True

    # trace command
    trace_parser = subparsers.add_parser('trace', help='Reconstruct the call trace of a saved debug trace')
    trace_parser.add_argument('trace_file', help='debug_traceTransaction result (RPC envelope or bare result) as JSON')
    trace_parser.add_argument('--tx-hash', dest='tx_hash', help='Transaction hash to label the trace with')
    trace_parser.add_argument('--from', dest='from_addr', help='Sender address')
    trace_parser.add_argument('--to', dest='to_addr', help='Recipient address (omit for contract creation)')
    trace_parser.add_argument('--input', help='Transaction calldata (hex string, 0x...)')
    trace_parser.add_argument('--timestamp', help='Block timestamp to attach to the root call')
    trace_parser.add_argument('--transaction', '-t', help='JSON file with the transaction ({"tx", "receipt", "block"} or a bare tx object)')
    trace_parser.add_argument('--abi', '-a', action='append', help='Contract ABI as ADDRESS:PATH. Can be specified multiple times')
    trace_parser.add_argument('--contracts', '-c', help='JSON file mapping contract addresses to names')
    trace_parser.add_argument('--tree', action='store_true', help='Also print the depth-indexed execution tree and opcode statistics')
    trace_parser.add_argument('--include-internal', dest='include_internal', action='store_true', help='Keep every opcode in the execution tree')
    trace_parser.add_argument('--no-decode', dest='no_decode', action='store_true', help='Do not decode calldata, return data or custom errors')
    trace_parser.add_argument('--json', action='store_true', help='Output the report as JSON')

    # logging
    trace_parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    trace_parser.add_argument('--verbose', action='store_true', help='Enable trace-level logging (very detailed)')
    trace_parser.add_argument('--quiet', '-q', action='store_true', help='Suppress log output')
    trace_parser.add_argument('--log-file', dest='log_file', help=f'Write logs to a file (default: ${LOG_FILE_ENV})')
    return parser


def main(argv=None):
    """Main entry point for txtrace CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        quiet=args.quiet,
        debug=args.debug,
        verbose=args.verbose,
        log_file=args.log_file or os.environ.get(LOG_FILE_ENV),
    )

    if args.command == 'trace':
        return trace_command(args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
