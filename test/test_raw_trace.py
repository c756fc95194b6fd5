"""Tests for raw trace normalization: envelope handling, numeric coercion, defaults."""

import json

import pytest

from txtrace.core.raw_trace import (
    RawTrace,
    StructLog,
    load_raw_trace,
    normalize_struct_log,
    parse_raw_trace,
    parse_raw_trace_json,
    to_uint,
)
from txtrace.utils.exceptions import MalformedTraceError

RAW_LOG = {
    "pc": 7,
    "op": "SLOAD",
    "gas": 79000,
    "gasCost": 2100,
    "depth": 1,
    "stack": ["0x0", "0x1"],
    "memory": ["00" * 32],
    "storage": {"00" * 32: "00" * 31 + "05"},
}


class TestEnvelopeShapes:
    def test_rpc_envelope(self):
        document = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {"gas": 21000, "failed": False, "returnValue": "", "structLogs": [RAW_LOG]},
        }
        raw = parse_raw_trace(document)
        assert isinstance(raw, RawTrace)
        assert raw.gas == 21000
        assert raw.failed is False
        assert len(raw.struct_logs) == 1
        assert raw.struct_logs[0].op == "SLOAD"

    def test_bare_result(self):
        raw = parse_raw_trace({"gas": "0x5208", "returnValue": "0x01", "structLogs": [RAW_LOG]})
        assert raw.gas == 21000
        assert raw.return_value == "0x01"
        assert raw.failed is None

    def test_missing_struct_logs_is_malformed(self):
        with pytest.raises(MalformedTraceError) as exc_info:
            parse_raw_trace({"result": {"gas": 1}})
        assert exc_info.value.error_code == "MalformedInput"

    def test_struct_logs_not_a_list_is_malformed(self):
        with pytest.raises(MalformedTraceError):
            parse_raw_trace({"structLogs": {"0": RAW_LOG}})

    def test_non_object_document_is_malformed(self):
        with pytest.raises(MalformedTraceError):
            parse_raw_trace([RAW_LOG])

    def test_rpc_error_envelope_is_malformed(self):
        with pytest.raises(MalformedTraceError) as exc_info:
            parse_raw_trace({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "not found"}})
        assert exc_info.value.details["rpc_error"]["code"] == -32000

    def test_non_object_entry_is_malformed(self):
        with pytest.raises(MalformedTraceError):
            parse_raw_trace({"structLogs": [RAW_LOG, "STOP"]})

    def test_return_value_defaults_to_0x(self):
        raw = parse_raw_trace({"structLogs": []})
        assert raw.return_value == "0x"
        assert raw.gas == 0
        assert raw.struct_logs == []


class TestNumericCoercion:
    @pytest.mark.parametrize("value, expected", [
        (42, 42),
        ("0x2a", 42),
        ("2a", 42),
        ("0X2A", 42),
        (None, 0),
        ("", 0),
        ("zz", 0),
        (-5, 0),
        (True, 0),
        (7.0, 7),
    ])
    def test_to_uint(self, value, expected):
        assert to_uint(value) == expected

    def test_hex_and_native_fields_normalize_identically(self):
        native = dict(RAW_LOG)
        hexed = dict(RAW_LOG, pc="0x7", gas="0x13498", gasCost="0x834", depth="0x1")
        assert normalize_struct_log(native) == normalize_struct_log(hexed)

    def test_large_values_keep_precision(self):
        log = normalize_struct_log({"op": "PUSH32", "gas": "0x" + "f" * 40})
        assert log.gas == (1 << 160) - 1


class TestEntryNormalization:
    def test_storage_keys_and_values_prefixed(self):
        log = normalize_struct_log({"op": "SLOAD", "storage": {"AbCd": "0F"}})
        assert log.storage == {"0xAbCd": "0x0F"}

    def test_defaults_for_missing_fields(self):
        log = normalize_struct_log({"op": "STOP"})
        assert log == StructLog(pc=0, op="STOP", gas=0, gas_cost=0, depth=0)
        assert log.stack == ()
        assert log.memory == ()
        assert log.storage == {}
        assert log.error is None

    def test_structured_error_is_stringified(self):
        log = normalize_struct_log({"op": "INVALID", "error": {"message": "bad"}})
        assert json.loads(log.error) == {"message": "bad"}

    def test_format_stack_shows_top_first(self):
        log = normalize_struct_log({"op": "ADD", "stack": ["0x1", "0x2", "0x3", "0x4"]})
        formatted = log.format_stack(max_items=2)
        assert formatted.startswith("[0] 0x4 [1] 0x3")
        assert "+2 more" in formatted

    def test_format_empty_stack(self):
        assert normalize_struct_log({"op": "STOP"}).format_stack() == "[empty]"


class TestLoading:
    def test_parse_json_text(self):
        raw = parse_raw_trace_json(json.dumps({"result": {"gas": 1, "structLogs": [RAW_LOG]}}))
        assert raw.struct_logs[0].gas_cost == 2100

    def test_invalid_json_text(self):
        with pytest.raises(MalformedTraceError):
            parse_raw_trace_json("{not json")

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "trace.json"
        path.write_text(json.dumps({"structLogs": [RAW_LOG]}))
        raw = load_raw_trace(str(path))
        assert raw.struct_logs[0].pc == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(MalformedTraceError) as exc_info:
            load_raw_trace(str(tmp_path / "missing.json"))
        assert exc_info.value.details["source"].endswith("missing.json")

    def test_malformed_file_records_source(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"result": {}}))
        with pytest.raises(MalformedTraceError) as exc_info:
            load_raw_trace(str(path))
        assert exc_info.value.details["source"] == str(path)
