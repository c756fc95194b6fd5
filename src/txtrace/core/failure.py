"""
Failure location over the generic trace tree.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from txtrace.core.trace_tree import TraceNode
from txtrace.parsers.revert import ErrorKind
from txtrace.utils.logging import get_logger

logger = get_logger('failure')


@dataclass
class FailureInfo:
    """The deepest REVERT of a trace and how execution got there."""
    failing_node_id: str
    failing_path: List[str] = field(default_factory=list)
    revert_data: str = '0x'
    decoded_reason: Optional[str] = None
    error_kind: ErrorKind = ErrorKind.UNKNOWN
    panic_code: Optional[str] = None
    custom_error_selector: Optional[str] = None
    custom_error_name: Optional[str] = None


def find_failure(nodes: Sequence[TraceNode], roots: Sequence[TraceNode]) -> Optional[FailureInfo]:
    """
    Locate the deepest REVERT node (the first one on ties) and its root path.

    Returns None when the trace has no REVERT.
    """
    deepest: Optional[TraceNode] = None
    for node in nodes:
        if node.op != "REVERT":
            continue
        if deepest is None or node.depth > deepest.depth:
            deepest = node

    if deepest is None:
        return None

    decoded = deepest.decoded_error
    info = FailureInfo(
        failing_node_id=deepest.id,
        failing_path=path_to_node(roots, deepest.id),
        revert_data=deepest.input or '0x',
    )
    if decoded is not None:
        info.decoded_reason = decoded.reason
        info.error_kind = decoded.kind
        info.panic_code = decoded.panic_code_hex
        info.custom_error_selector = decoded.selector
        info.custom_error_name = decoded.custom_error_name

    logger.debug(f"Deepest revert: {info.failing_node_id} ({info.error_kind.value})")
    return info


def path_to_node(roots: Sequence[TraceNode], target_id: str) -> List[str]:
    """Node ids from a root down to ``target_id``; empty when unreachable."""
    path: List[str] = []

    def dfs(node: TraceNode) -> bool:
        path.append(node.id)
        if node.id == target_id:
            return True
        for child in node.children:
            if dfs(child):
                return True
        path.pop()
        return False

    for root in roots:
        if dfs(root):
            return path
    return path
