"""
JSON serialization of trace reports.

The call trace keeps the Tenderly layout (snake_case keys, ``from``,
single-element storage arrays, ``soltype`` argument records) so it can be
consumed by tools written against Tenderly. Generic tree nodes and the
failure record use camelCase keys. Unset optional fields are omitted.
"""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from hexbytes import HexBytes

from txtrace.core.analyzer import TraceMetadata, TraceReport
from txtrace.core.call_trace import CallTrace, DisplayParam, StackTraceEntry
from txtrace.core.failure import FailureInfo
from txtrace.core.summary import TransactionSummary
from txtrace.core.trace_tree import TraceNode, TraceTreeResult
from txtrace.parsers.revert import DecodedError
from txtrace.utils.helpers import pad_hex32

# Scalar CallTrace fields in output order (attribute, JSON key).
CALL_TRACE_FIELDS = (
    ('hash', 'hash'),
    ('block_timestamp', 'block_timestamp'),
    ('contract_name', 'contract_name'),
    ('function_name', 'function_name'),
    ('function_signature', 'function_signature'),
    ('function_pc', 'function_pc'),
    ('function_op', 'function_op'),
    ('absolute_position', 'absolute_position'),
    ('caller_pc', 'caller_pc'),
    ('caller_op', 'caller_op'),
    ('call_type', 'call_type'),
    ('address', 'address'),
    ('from_addr', 'from'),
    ('to', 'to'),
    ('value', 'value'),
    ('gas', 'gas'),
    ('gas_used', 'gas_used'),
    ('input', 'input'),
    ('output', 'output'),
    ('error', 'error'),
    ('error_op', 'error_op'),
    ('error_message', 'error_message'),
    ('error_absolute_position', 'error_absolute_position'),
    ('error_hex_data', 'error_hex_data'),
    ('storage_address', 'storage_address'),
)

STORAGE_ARRAY_FIELDS = ('storage_slot', 'storage_value_original', 'storage_value_dirty')

TRACE_NODE_FIELDS = (
    ('id', 'id'),
    ('type', 'type'),
    ('op', 'op'),
    ('depth', 'depth'),
    ('step_index', 'stepIndex'),
    ('pc', 'pc'),
    ('gas_before', 'gasBefore'),
    ('gas_after', 'gasAfter'),
    ('gas_cost', 'gasCost'),
    ('parent_id', 'parentId'),
    ('error', 'error'),
    ('from_addr', 'from'),
    ('to', 'to'),
    ('value', 'value'),
    ('input', 'input'),
    ('output', 'output'),
    ('storage_slot', 'storageSlot'),
    ('storage_value', 'storageValue'),
    ('event_topics', 'eventTopics'),
    ('event_data', 'eventData'),
)


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


class TraceSerializer:
    """Serializes trace reports to JSON-ready dicts."""

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert non-serializable objects to JSON-serializable format."""
        if isinstance(obj, HexBytes):
            return '0x' + bytes(obj).hex()
        elif isinstance(obj, bytes):
            return '0x' + obj.hex()
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, dict):
            return {k: self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple, set)):
            items = sorted(obj) if isinstance(obj, set) else obj
            return [self._convert_to_serializable(item) for item in items]
        elif is_dataclass(obj):
            return self._convert_to_serializable(asdict(obj))
        else:
            return obj

    # ------------------------------------------------------------------
    # Call trace (Tenderly layout)
    # ------------------------------------------------------------------

    @staticmethod
    def serialize_param(param: DisplayParam, index: int) -> Dict[str, Any]:
        return {
            "soltype": {
                "name": param.name,
                "type": param.type,
                "storage_location": "default",
                "offset": param.offset,
                "index": pad_hex32(index),
                "indexed": False,
                "simple_type": {"type": param.type},
            },
            "value": param.value,
        }

    def serialize_params(self, params: Optional[List[DisplayParam]]) -> Optional[List[Dict[str, Any]]]:
        if params is None:
            return None
        return [self.serialize_param(param, idx) for idx, param in enumerate(params)]

    def serialize_decoded_error(self, decoded: Optional[DecodedError]) -> Optional[Dict[str, Any]]:
        if decoded is None:
            return None
        data = {
            "kind": decoded.kind.value,
            "reason": decoded.reason,
            "panic_code": decoded.panic_code_hex,
            "panic_description": decoded.panic_description,
            "selector": decoded.selector,
            "custom_error_name": decoded.custom_error_name,
        }
        if decoded.custom_error_args:
            data["custom_error_args"] = self._convert_to_serializable(decoded.custom_error_args)
        return {k: v for k, v in data.items() if v is not None}

    def serialize_call_trace(self, trace: CallTrace) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, key in CALL_TRACE_FIELDS:
            value = getattr(trace, attr)
            if value is not None:
                data[key] = value
        for attr in STORAGE_ARRAY_FIELDS:
            value = getattr(trace, attr)
            if value is not None:
                data[attr] = [value]

        decoded_input = self.serialize_params(trace.decoded_input)
        if decoded_input is not None:
            data["decoded_input"] = decoded_input
        decoded_output = self.serialize_params(trace.decoded_output)
        if decoded_output is not None:
            data["decoded_output"] = decoded_output
        decoded_error = self.serialize_decoded_error(trace.decoded_error)
        if decoded_error is not None:
            data["decoded_error"] = decoded_error
        if trace.caused_revert:
            data["caused_revert"] = True

        if not trace.is_leaf:
            data["calls"] = [self.serialize_call_trace(child) for child in trace.calls]
        return self._convert_to_serializable(data)

    @staticmethod
    def serialize_stack_entry(entry: StackTraceEntry) -> Dict[str, Any]:
        data = asdict(entry)
        return {k: v for k, v in data.items() if v is not None}

    # ------------------------------------------------------------------
    # Generic tree and failure (camelCase)
    # ------------------------------------------------------------------

    def serialize_trace_node(self, node: TraceNode) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, key in TRACE_NODE_FIELDS:
            value = getattr(node, attr)
            if value is not None:
                data[key] = value
        data["category"] = node.category.value
        decoded_error = self.serialize_decoded_error(node.decoded_error)
        if decoded_error is not None:
            data["decodedError"] = {_camel(k): v for k, v in decoded_error.items()}
        data["children"] = [self.serialize_trace_node(child) for child in node.children]
        return self._convert_to_serializable(data)

    def serialize_tree(self, tree: TraceTreeResult) -> Dict[str, Any]:
        return {
            "roots": [self.serialize_trace_node(root) for root in tree.roots],
            "maxDepth": tree.max_depth,
            "totalSteps": tree.total_steps,
            "totalGasCost": tree.total_gas_cost,
            "opCounts": dict(tree.op_counts),
        }

    def serialize_failure(self, failure: Optional[FailureInfo]) -> Optional[Dict[str, Any]]:
        if failure is None:
            return None
        data = {_camel(k): v for k, v in asdict(failure).items() if v is not None}
        return self._convert_to_serializable(data)

    def serialize_metadata(self, metadata: TraceMetadata) -> Dict[str, Any]:
        return {_camel(k): v for k, v in asdict(metadata).items() if v is not None}

    def serialize_summary(self, summary: Optional[TransactionSummary]) -> Optional[Dict[str, Any]]:
        if summary is None:
            return None
        data = {}
        for key, value in asdict(summary).items():
            if value is None:
                continue
            data["from" if key == "from_addr" else _camel(key)] = value
        return data

    def serialize_report(self, report: TraceReport, include_tree: bool = False) -> Dict[str, Any]:
        """Serialize a full report: status, metadata, call trace, stack trace, failure."""
        response: Dict[str, Any] = {
            "status": "success" if report.success else "reverted",
            "metadata": self.serialize_metadata(report.metadata),
            "callTrace": self.serialize_call_trace(report.call_trace.call_trace),
            "stackTrace": [self.serialize_stack_entry(e) for e in report.call_trace.stack_trace],
            "addresses": report.addresses,
        }
        failure = self.serialize_failure(report.failure)
        if failure is not None:
            response["failure"] = failure
        summary = self.serialize_summary(report.summary)
        if summary is not None:
            response["summary"] = summary
        if include_tree:
            response["tree"] = self.serialize_tree(report.tree)
        return self._convert_to_serializable(response)

    def to_json(self, report: TraceReport, include_tree: bool = False, indent: Optional[int] = 2) -> str:
        return json.dumps(self.serialize_report(report, include_tree=include_tree), indent=indent)
