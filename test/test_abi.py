"""Tests for ABI indexing, call / return / custom error decoding and display formatting."""

import json

import pytest
from eth_abi import encode

from txtrace.parsers.abi import (
    ContractABI,
    DecodedParam,
    decode_function_call,
    decode_function_result,
    format_abi_type,
    format_decoded_input,
    format_value,
    function_signature,
    load_abi,
    selector_for,
)
from txtrace.utils.exceptions import ABIParseError

from struct_logs import RECEIVER, TRANSFER_ABI, transfer_calldata


class TestSignatures:
    def test_transfer_selector(self):
        assert selector_for("transfer(address,uint256)") == "0xa9059cbb"

    def test_tuple_types_expand(self):
        item = {
            "name": "submit",
            "inputs": [
                {"type": "tuple", "components": [{"type": "address"}, {"type": "uint256"}]},
                {"type": "tuple[]", "components": [{"type": "bytes32"}]},
            ],
        }
        assert function_signature(item) == "submit((address,uint256),(bytes32)[])"

    def test_nested_tuple(self):
        param = {"type": "tuple", "components": [{"type": "tuple", "components": [{"type": "bool"}]}]}
        assert format_abi_type(param) == "((bool))"


class TestContractABI:
    def test_indexes_functions_and_errors(self):
        abi = ContractABI(TRANSFER_ABI)
        assert abi.function_signatures["0xa9059cbb"] == "transfer(address,uint256)"
        assert "balanceOf" in abi.function_abis_by_name
        assert selector_for("InsufficientBalance(uint256,uint256)") in abi.error_abis

    def test_events_and_unnamed_entries_are_not_functions(self):
        abi = ContractABI(TRANSFER_ABI + [{"type": "fallback"}, {"type": "constructor", "inputs": []}])
        assert len(abi.function_abis) == 2

    def test_from_json_variants(self):
        assert ContractABI.from_json(json.dumps(TRANSFER_ABI)).function_abis
        artifact = ContractABI.from_json({"contractName": "Token", "abi": TRANSFER_ABI})
        assert artifact.name == "Token"

    @pytest.mark.parametrize("data", ["not json", {"bytecode": "0x"}, 42])
    def test_from_json_rejects_unknown_formats(self, data):
        with pytest.raises(ABIParseError):
            ContractABI.from_json(data)

    def test_load_abi_file(self, tmp_path):
        path = tmp_path / "Token.json"
        path.write_text(json.dumps({"abi": TRANSFER_ABI}))
        abi = load_abi(str(path), name="Token")
        assert abi.name == "Token"

    def test_load_abi_missing_file(self, tmp_path):
        with pytest.raises(ABIParseError) as exc_info:
            load_abi(str(tmp_path / "nope.json"))
        assert exc_info.value.error_code == "ABIParseError"


class TestCallDecoding:
    def test_transfer_decodes(self):
        decoded = decode_function_call(transfer_calldata(RECEIVER, 1234), TRANSFER_ABI)
        assert decoded.name == "transfer"
        assert decoded.signature == "transfer(address,uint256)"
        assert decoded.selector == "0xa9059cbb"
        assert [p.name for p in decoded.args] == ["to", "amount"]
        assert decoded.args[0].value.lower() == RECEIVER
        assert decoded.args[1].value == 1234

    def test_unknown_selector_is_undecodable(self):
        assert decode_function_call("0x12345678" + "00" * 32, TRANSFER_ABI) is None

    def test_short_input_is_undecodable(self):
        assert decode_function_call("0xa9059c", TRANSFER_ABI) is None

    def test_truncated_arguments_are_undecodable(self):
        calldata = transfer_calldata(RECEIVER, 1)[:-64]
        assert decode_function_call(calldata, TRANSFER_ABI) is None

    def test_unnamed_inputs_get_positional_names(self):
        abi = [{"type": "function", "name": "set", "inputs": [{"type": "uint256"}]}]
        calldata = selector_for("set(uint256)") + encode(["uint256"], [5]).hex()
        decoded = decode_function_call(calldata, abi)
        assert decoded.args[0].name == "param0"

    def test_bytes_are_rendered_as_hex(self):
        abi = [{"type": "function", "name": "store", "inputs": [{"name": "blob", "type": "bytes"}]}]
        calldata = selector_for("store(bytes)") + encode(["bytes"], [b"\x01\x02"]).hex()
        assert decode_function_call(calldata, abi).args[0].value == "0x0102"

    def test_format_call(self):
        decoded = decode_function_call(transfer_calldata(RECEIVER, 5), TRANSFER_ABI)
        to = format_value(decoded.args[0].value, "address")
        assert decoded.format() == f"transfer(to = {to}, amount = 5)"


class TestResultDecoding:
    def test_named_output(self):
        output = "0x" + encode(["uint256"], [10 ** 18]).hex()
        params = decode_function_result(output, TRANSFER_ABI, "balanceOf")
        assert params == [DecodedParam("balance", "uint256", 10 ** 18)]

    def test_unnamed_output(self):
        output = "0x" + encode(["bool"], [True]).hex()
        params = decode_function_result(output, TRANSFER_ABI, "transfer")
        assert params[0].name == "return0"
        assert params[0].value is True

    def test_unknown_function(self):
        assert decode_function_result("0x" + "00" * 32, TRANSFER_ABI, "approve") is None

    def test_empty_output(self):
        assert decode_function_result("0x", TRANSFER_ABI, "balanceOf") is None

    def test_overload_selected_by_signature(self):
        abi = [
            {"type": "function", "name": "get", "inputs": [{"name": "id", "type": "uint256"}],
             "outputs": [{"name": "amount", "type": "uint256"}]},
            {"type": "function", "name": "get", "inputs": [{"name": "owner", "type": "address"}],
             "outputs": [{"name": "delegate", "type": "address"}, {"name": "active", "type": "bool"}]},
        ]
        output = "0x" + encode(["address", "bool"], [RECEIVER, True]).hex()
        params = decode_function_result(output, abi, "get", "get(address)")
        assert [(p.name, p.type) for p in params] == [("delegate", "address"), ("active", "bool")]
        assert params[1].value is True
        # without a signature the first overload with outputs wins
        assert decode_function_result(output, abi, "get")[0].type == "uint256"


class TestCustomErrors:
    def test_resolves_name_and_arguments(self):
        selector = selector_for("InsufficientBalance(uint256,uint256)")
        data = selector + encode(["uint256", "uint256"], [1, 2]).hex()
        resolved = ContractABI(TRANSFER_ABI).decode_custom_error(data)
        assert resolved.name == "InsufficientBalance"
        assert [p.value for p in resolved.args] == [1, 2]

    def test_unknown_error(self):
        assert ContractABI(TRANSFER_ABI).decode_custom_error("0xdeadbeef") is None


class TestFormatting:
    def test_address_is_shortened(self):
        address = "0x" + "ab" * 20
        assert format_value(address, "address") == "0xabababab...abababab"

    def test_address_from_padded_word(self):
        word = "0x" + "0" * 24 + "ab" * 20
        assert format_value(word, "address") == "0xabababab...abababab"

    def test_small_integer_is_plain(self):
        assert format_value(999_999, "uint256") == "999999"

    def test_large_integer_is_grouped(self):
        assert format_value(1_000_000, "uint256") == "1,000,000"

    def test_bool(self):
        assert format_value(True, "bool") == "true"
        assert format_value(False, "bool") == "false"

    def test_bytes(self):
        assert format_value(b"\x12\x34", "bytes") == "0x1234"

    def test_long_value_is_truncated(self):
        assert format_value("x" * 31, "string") == "x" * 20 + "..."
        assert format_value("x" * 30, "string") == "x" * 30

    def test_array(self):
        assert format_value([1, 2], "uint256[]") == "[1, 2]"

    def test_decoded_input_rendering(self):
        params = [DecodedParam("a", "uint256", 1), DecodedParam("b", "bool", True)]
        assert format_decoded_input("f", params) == "f(a = 1, b = true)"
        assert format_decoded_input("f", []) == "f"
