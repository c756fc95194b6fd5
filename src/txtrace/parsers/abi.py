"""
ABI utilities: selector indexing, call / return / custom error decoding and
display formatting of decoded values.

Decoding never raises. Most contracts met in a trace are unverified or only
partially described, so a selector that matches nothing or data that does
not fit the declared types simply yields None.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from eth_abi import decode
from eth_utils import keccak, to_checksum_address

from txtrace.utils.exceptions import ABIParseError
from txtrace.utils.helpers import strip_0x
from txtrace.utils.logging import get_logger

logger = get_logger('abi')

# Display rules. Downstream consumers rely on these staying stable.
ADDRESS_PREFIX_CHARS = 10
ADDRESS_SUFFIX_CHARS = 8
INT_GROUPING_THRESHOLD = 1_000_000
MAX_VALUE_CHARS = 30
TRUNCATED_VALUE_CHARS = 20
ELLIPSIS = "..."


@dataclass
class DecodedParam:
    """One decoded argument or return value."""
    name: str
    type: str
    value: Any

    def display(self) -> str:
        return format_value(self.value, self.type)


@dataclass
class DecodedFunction:
    """A call (or custom error) matched against an ABI entry."""
    name: str
    signature: str
    selector: str
    args: List[DecodedParam] = field(default_factory=list)

    def format(self) -> str:
        return format_decoded_input(self.name, self.args)


def format_abi_type(abi_input: Dict[str, Any]) -> str:
    """Format ABI type, expanding tuples (and tuple arrays) to their components."""
    abi_type = abi_input['type']
    if abi_type.startswith('tuple'):
        components = abi_input.get('components', [])
        component_types = [format_abi_type(comp) for comp in components]
        suffix = abi_type[len('tuple'):]
        return f"({','.join(component_types)}){suffix}"
    return abi_type


def function_signature(item: Dict[str, Any]) -> str:
    input_types = ','.join(format_abi_type(inp) for inp in item.get('inputs', []))
    return f"{item['name']}({input_types})"


def selector_for(signature: str) -> str:
    """First 4 bytes of keccak256(signature) as 0x hex."""
    return '0x' + keccak(text=signature)[:4].hex()


def _normalize(value: Any, abi_type: str) -> Any:
    """Turn eth_abi output into plain, display friendly Python values."""
    if isinstance(value, bytes):
        return '0x' + value.hex()
    if isinstance(value, (list, tuple)):
        element_type = abi_type[:abi_type.rfind('[')] if abi_type.endswith(']') else abi_type
        return [_normalize(item, element_type) for item in value]
    if isinstance(value, str) and 'address' in abi_type and len(value) == 42:
        try:
            return to_checksum_address(value)
        except ValueError:
            return value
    return value


def _decode_params(abi_params: List[Dict[str, Any]], data: bytes, default_name: str) -> List[DecodedParam]:
    types = [format_abi_type(param) for param in abi_params]
    values = decode(types, data)
    params = []
    for i, (param, abi_type, value) in enumerate(zip(abi_params, types, values)):
        name = param.get('name') or f"{default_name}{i}"
        params.append(DecodedParam(name, abi_type, _normalize(value, abi_type)))
    return params


def _to_bytes(hex_data: str) -> Optional[bytes]:
    try:
        return bytes.fromhex(strip_0x(hex_data))
    except ValueError:
        return None


class ContractABI:
    """
    Index of one contract's ABI.

    Functions and custom errors are keyed by their 4-byte selector, the way
    a contract dispatches them.
    """

    def __init__(self, abi: List[Dict[str, Any]], name: Optional[str] = None):
        self.abi = list(abi)
        self.name = name
        self.function_signatures: Dict[str, str] = {}  # selector -> signature
        self.function_abis: Dict[str, Dict[str, Any]] = {}  # selector -> ABI item
        self.function_abis_by_name: Dict[str, List[Dict[str, Any]]] = {}  # name -> overloads
        self.error_abis: Dict[str, Dict[str, Any]] = {}  # selector -> error item

        for item in self.abi:
            if not isinstance(item, dict) or 'name' not in item:
                continue
            item_type = item.get('type', 'function')
            try:
                signature = function_signature(item)
            except (KeyError, TypeError):
                logger.debug(f"Skipping malformed ABI entry: {item!r}")
                continue

            if item_type == 'function':
                selector = selector_for(signature)
                self.function_signatures[selector] = signature
                self.function_abis[selector] = item
                self.function_abis_by_name.setdefault(item['name'], []).append(item)
            elif item_type == 'error':
                self.error_abis[selector_for(signature)] = item

    @classmethod
    def from_json(cls, data: Union[str, list, dict], name: Optional[str] = None) -> 'ContractABI':
        """Build from a JSON ABI array, a compiler artifact ({"abi": [...]}) or their JSON text."""
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise ABIParseError(f"Invalid ABI JSON: {e}")

        if isinstance(data, list):
            return cls(data, name=name)
        if isinstance(data, dict) and isinstance(data.get('abi'), list):
            return cls(data['abi'], name=name or data.get('contractName'))
        raise ABIParseError("Unknown ABI format: expected a list or an object with an 'abi' list")

    def decode_function_call(self, input_data: str) -> Optional[DecodedFunction]:
        """Match calldata against the ABI and decode its arguments."""
        if not input_data or len(input_data) < 10:
            return None
        input_data = input_data if input_data.startswith('0x') else '0x' + input_data
        selector = input_data[:10].lower()
        item = self.function_abis.get(selector)
        if item is None:
            return None

        data = _to_bytes(input_data[10:])
        if data is None:
            return None
        try:
            args = _decode_params(item.get('inputs', []), data, 'param')
        except Exception as e:
            logger.debug(f"Could not decode calldata for {self.function_signatures[selector]}: {e}")
            return None
        return DecodedFunction(item['name'], self.function_signatures[selector], selector, args)

    def decode_function_result(
        self,
        function_name: str,
        output: str,
        signature: Optional[str] = None,
    ) -> Optional[List[DecodedParam]]:
        """
        Decode return data positionally against the declared outputs of ``function_name``.

        ``signature`` selects the overload the call was decoded as; without
        it the first overload declaring outputs is used.
        """
        item = self.function_abis.get(selector_for(signature)) if signature else None
        if item is None:
            candidates = [
                entry for entry in self.function_abis_by_name.get(function_name, [])
                if entry.get('outputs')
            ]
            item = candidates[0] if candidates else None
        if item is None or not item.get('outputs'):
            return None

        data = _to_bytes(output or '')
        if not data:
            return None
        try:
            return _decode_params(item['outputs'], data, 'return')
        except Exception as e:
            logger.debug(f"Could not decode return data of {signature or function_name}: {e}")
            return None

    def decode_custom_error(self, revert_data: str) -> Optional[DecodedFunction]:
        """Resolve a custom error payload to its declared name and arguments."""
        if not revert_data or len(revert_data) < 10:
            return None
        selector = revert_data[:10].lower()
        item = self.error_abis.get(selector)
        if item is None:
            return None

        data = _to_bytes(revert_data[10:])
        args: List[DecodedParam] = []
        if data is not None and item.get('inputs'):
            try:
                args = _decode_params(item['inputs'], data, 'param')
            except Exception as e:
                logger.debug(f"Could not decode arguments of error {item['name']}: {e}")
        return DecodedFunction(item['name'], function_signature(item), selector, args)


def load_abi(abi_path: str, name: Optional[str] = None) -> ContractABI:
    """Load an ABI (plain array or compiler artifact) from a JSON file."""
    try:
        with open(abi_path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ABIParseError(f"Could not load ABI from {abi_path}: {e}", source=abi_path)
    try:
        return ContractABI.from_json(data, name=name)
    except ABIParseError as e:
        e.details.setdefault("source", abi_path)
        raise


def as_contract_abi(abi: Union[ContractABI, List[Dict[str, Any]]]) -> ContractABI:
    if isinstance(abi, ContractABI):
        return abi
    return ContractABI(abi)


def decode_function_call(input_data: str, abi: Union[ContractABI, List[Dict[str, Any]]]) -> Optional[DecodedFunction]:
    """Decode calldata against an ABI; None when undecodable."""
    return as_contract_abi(abi).decode_function_call(input_data)


def decode_function_result(
    output: str,
    abi: Union[ContractABI, List[Dict[str, Any]]],
    function_name: str,
    signature: Optional[str] = None,
) -> Optional[List[DecodedParam]]:
    """Decode return data of ``function_name`` (or its overload ``signature``); None when undecodable."""
    return as_contract_abi(abi).decode_function_result(function_name, output, signature)


# ============================================================================
# Display formatting
# ============================================================================

def _format_address(value: str) -> Optional[str]:
    hex_part = strip_0x(value)
    if len(hex_part) < 40:
        return None
    addr = '0x' + hex_part[-40:]
    return f"{addr[:ADDRESS_PREFIX_CHARS]}{ELLIPSIS}{addr[-ADDRESS_SUFFIX_CHARS:]}"


def _format_int(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        try:
            number = int(str(value), 0)
        except ValueError:
            return None
    if number < INT_GROUPING_THRESHOLD:
        return str(number)
    return f"{number:,}"


def format_value(value: Any, abi_type: str) -> str:
    """
    Render one decoded value for display.

    Addresses are shortened to a fixed prefix and suffix, integers of a
    million and above are grouped with commas, and any other rendering
    longer than 30 characters is cut to 20 followed by an ellipsis.
    """
    if abi_type == 'address' and isinstance(value, str):
        formatted = _format_address(value)
        if formatted is not None:
            return formatted

    if abi_type.startswith(('uint', 'int')) and not abi_type.endswith(']'):
        formatted = _format_int(value)
        if formatted is not None:
            return formatted

    if isinstance(value, bool):
        text = 'true' if value else 'false'
    elif isinstance(value, bytes):
        text = '0x' + value.hex()
    elif isinstance(value, (list, tuple)):
        element_type = abi_type[:abi_type.rfind('[')] if abi_type.endswith(']') else ''
        text = '[' + ', '.join(format_value(item, element_type) for item in value) + ']'
    else:
        text = str(value)

    if len(text) > MAX_VALUE_CHARS:
        return f"{text[:TRUNCATED_VALUE_CHARS]}{ELLIPSIS}"
    return text


def format_decoded_input(function_name: Optional[str], params: Optional[List[DecodedParam]]) -> Optional[str]:
    """Render ``name(param = value, ...)``; just the name without parameters."""
    if not function_name or not params:
        return function_name
    rendered = [f"{param.name or 'param'} = {param.display()}" for param in params]
    return f"{function_name}({', '.join(rendered)})"
