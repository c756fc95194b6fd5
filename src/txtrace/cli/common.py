"""
Common utilities for CLI commands.

Loading of the auxiliary inputs a trace is analyzed with (ABIs, contract
names, transaction objects) and uniform error reporting.
"""

import json
import sys
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import to_checksum_address
from eth_utils.address import is_address
from hexbytes import HexBytes

from txtrace.parsers.abi import ContractABI, load_abi
from txtrace.utils.exceptions import ParseError, format_error
from txtrace.utils.logging import logger


def normalize_address(address: str) -> str:
    """
    Normalize an Ethereum address to checksum format.

    Args:
        address: Ethereum address (with or without 0x prefix)

    Returns:
        Checksummed address

    Raises:
        ValueError: If address is invalid
    """
    if not address:
        raise ValueError("Address cannot be empty")

    if not address.startswith('0x'):
        address = '0x' + address

    if not is_address(address):
        raise ValueError(f"Invalid Ethereum address: {address}")

    return to_checksum_address(address)


def normalize_hex_data(data: str) -> str:
    """Validate a hex data argument and return it 0x-prefixed and lower-cased."""
    try:
        return '0x' + bytes(HexBytes(data)).hex()
    except ValueError as e:
        raise ValueError(f"Invalid hex data: {data} ({e})")


def parse_abi_spec(spec: str) -> Tuple[str, str]:
    """
    Split an ``ADDRESS:PATH`` ABI argument.

    Raises:
        ValueError: If the address part is missing or invalid
    """
    address, sep, path = spec.partition(':')
    if not sep or not path:
        raise ValueError(f"Invalid --abi value '{spec}', expected ADDRESS:PATH")
    return normalize_address(address).lower(), path


def load_abi_files(specs: Optional[List[str]]) -> Dict[str, ContractABI]:
    """
    Load every ``ADDRESS:PATH`` ABI given on the command line.

    Returns:
        Mapping of lower-cased address to its ContractABI
    """
    abi_map: Dict[str, ContractABI] = {}
    for spec in specs or []:
        address, path = parse_abi_spec(spec)
        abi_map[address] = load_abi(path)
        logger.debug(f"Loaded ABI for {address} from {path}")
    return abi_map


def _read_json(path: str, what: str) -> Any:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ParseError(f"Could not load {what} from {path}: {e}", source=path)


def load_contract_names(path: str) -> Dict[str, Any]:
    """
    Load a contract name mapping file.

    The file maps addresses to either a name or a metadata object with a
    ``contractName`` key, e.g. ``{"0xabc...": "Token"}``.
    """
    data = _read_json(path, "contract names")
    if not isinstance(data, dict):
        raise ParseError(f"Contract names file must hold a JSON object: {path}", source=path)
    logger.debug(f"Loaded {len(data)} contract name(s) from {path}")
    return {address.lower(): entry for address, entry in data.items()}


def load_transaction_file(path: str) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """
    Load transaction context saved from the RPC.

    Accepts ``{"tx": ..., "receipt": ..., "block": ...}``, a bare transaction
    object, or a JSON-RPC envelope around a transaction.

    Returns:
        Tuple of (tx, receipt, block); receipt and block may be None
    """
    data = _read_json(path, "transaction")
    if isinstance(data, dict) and isinstance(data.get('result'), dict):
        data = data['result']
    if not isinstance(data, dict):
        raise ParseError(f"Transaction file must hold a JSON object: {path}", source=path)
    if isinstance(data.get('tx'), dict):
        return data['tx'], data.get('receipt'), data.get('block')
    return data, None, None


def handle_command_error(
    e: Exception,
    json_mode: bool = False,
    exit_code: int = 1
) -> int:
    """
    Handle command errors uniformly.

    Args:
        e: The exception that occurred
        json_mode: If True, output as JSON
        exit_code: Exit code to return

    Returns:
        Exit code
    """
    error_output = format_error(e, json_mode)
    if json_mode:
        print(error_output)
    else:
        print(error_output, file=sys.stderr)
    return exit_code
