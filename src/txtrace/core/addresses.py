"""
Collect the contract addresses a transaction touches, so callers know which
ABIs and contract names to resolve before building the call trace.
"""

from typing import Optional, Sequence, Set

from txtrace.core.opcodes import CALL_OPS
from txtrace.core.raw_trace import StructLog
from txtrace.utils.helpers import stack_address


def collect_contract_addresses(struct_logs: Sequence[StructLog], tx_to: Optional[str] = None) -> Set[str]:
    """Lower-cased ``tx_to`` plus every CALL-family target on the stack."""
    addresses: Set[str] = set()
    if tx_to:
        addresses.add(tx_to.lower())

    for log in struct_logs:
        if log.op not in CALL_OPS:
            continue
        target = stack_address(log.stack, 1)
        if target is not None:
            addresses.add(target)

    return addresses
