"""
CLI module for txtrace commands.

This module provides the command-line interface for txtrace.
"""

from .main import main

__all__ = [
    'main',
    'trace_command',
]


# Lazy imports to avoid circular dependencies
def trace_command(args):
    """Execute the trace command."""
    from .trace import trace_command as _trace_command
    return _trace_command(args)
