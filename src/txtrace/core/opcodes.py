"""
Opcode classification and operand extraction.

Operands are read from the struct-log stack counted from the top, in the
order each instruction pops them:

    CALL / CALLCODE            gas, to, value, inOffset, inSize, outOffset, outSize
    DELEGATECALL / STATICCALL  gas, to, inOffset, inSize, outOffset, outSize
    CREATE                     value, offset, size
    CREATE2                    value, offset, size, salt
"""

from enum import Enum
from typing import NamedTuple, Optional

from txtrace.utils.helpers import stack_address, stack_item

CALL_OPS = ("CALL", "CALLCODE", "DELEGATECALL", "STATICCALL")
VALUE_CALL_OPS = ("CALL", "CALLCODE")
CREATE_OPS = ("CREATE", "CREATE2")
STORAGE_OPS = ("SLOAD", "SSTORE")
LOG_OPS = ("LOG0", "LOG1", "LOG2", "LOG3", "LOG4")
CONTROL_OPS = ("JUMP", "JUMPI", "REVERT", "RETURN", "STOP", "SELFDESTRUCT")

INTERESTING_OPS = frozenset(CALL_OPS + CREATE_OPS + STORAGE_OPS + LOG_OPS + CONTROL_OPS)

INTERNAL = "INTERNAL"


class OpCategory(str, Enum):
    CALL = "CALL"
    CREATE = "CREATE"
    STORAGE = "STORAGE"
    LOG = "LOG"
    CONTROL = "CONTROL"
    INTERNAL = "INTERNAL"


def classify_op(op: str) -> OpCategory:
    if op in CALL_OPS:
        return OpCategory.CALL
    if op in CREATE_OPS:
        return OpCategory.CREATE
    if op in STORAGE_OPS:
        return OpCategory.STORAGE
    if op in LOG_OPS:
        return OpCategory.LOG
    if op in CONTROL_OPS:
        return OpCategory.CONTROL
    return OpCategory.INTERNAL


class CallOperands(NamedTuple):
    gas: int
    to: Optional[str]
    value: int
    in_offset: int
    in_size: int
    out_offset: int
    out_size: int


class CreateOperands(NamedTuple):
    value: int
    offset: int
    size: int
    salt: Optional[int]


def call_operands(op: str, stack) -> CallOperands:
    """Operands of a CALL-family instruction."""
    gas = stack_item(stack, 0)
    to = stack_address(stack, 1)
    if op in VALUE_CALL_OPS:
        return CallOperands(
            gas, to,
            value=stack_item(stack, 2),
            in_offset=stack_item(stack, 3),
            in_size=stack_item(stack, 4),
            out_offset=stack_item(stack, 5),
            out_size=stack_item(stack, 6),
        )
    return CallOperands(
        gas, to,
        value=0,
        in_offset=stack_item(stack, 2),
        in_size=stack_item(stack, 3),
        out_offset=stack_item(stack, 4),
        out_size=stack_item(stack, 5),
    )


def create_operands(op: str, stack) -> CreateOperands:
    """Operands of CREATE / CREATE2."""
    salt = stack_item(stack, 3) if op == "CREATE2" else None
    return CreateOperands(
        value=stack_item(stack, 0),
        offset=stack_item(stack, 1),
        size=stack_item(stack, 2),
        salt=salt,
    )
