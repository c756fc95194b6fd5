"""
Transaction summary built from the JSON-RPC ``eth_getTransactionByHash``,
``eth_getTransactionReceipt`` and ``eth_getBlockByNumber`` results.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from txtrace.utils.helpers import hex_to_int

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_REVERTED = "reverted"


@dataclass
class TransactionSummary:
    hash: str
    status: str
    block_number: int
    timestamp: int
    from_addr: str
    to: Optional[str]
    value: str
    gas_used: str
    gas_limit: str
    effective_gas_price: str
    contract_address: Optional[str] = None
    nonce: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS


def _status(receipt_status: Any) -> str:
    if receipt_status in ("0x1", 1):
        return STATUS_SUCCESS
    if receipt_status in ("0x0", 0):
        return STATUS_FAILED
    return STATUS_REVERTED


def build_transaction_summary(
    tx: Dict[str, Any],
    receipt: Dict[str, Any],
    block: Dict[str, Any],
) -> TransactionSummary:
    """Combine tx, receipt and block RPC objects. Hex quantities stay hex strings."""
    return TransactionSummary(
        hash=tx.get('hash', ''),
        status=_status(receipt.get('status')),
        block_number=hex_to_int(receipt.get('blockNumber')),
        timestamp=hex_to_int(block.get('timestamp')),
        from_addr=tx.get('from', ''),
        to=tx.get('to') or None,
        value=tx.get('value') or '0x0',
        gas_used=receipt.get('gasUsed') or '0x0',
        gas_limit=tx.get('gas') or '0x0',
        effective_gas_price=receipt.get('effectiveGasPrice') or tx.get('gasPrice') or '0x0',
        contract_address=receipt.get('contractAddress') or None,
        nonce=hex_to_int(tx.get('nonce')),
    )
