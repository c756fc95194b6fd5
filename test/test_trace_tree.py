"""Tests for the generic depth-grouped trace tree."""

from txtrace.core.opcodes import INTERNAL, OpCategory, call_operands, create_operands
from txtrace.core.trace_tree import TraceTreeBuilder, parse_struct_logs

from struct_logs import (
    RECEIVER,
    TOKEN,
    VAULT,
    call_stack,
    call_then_revert_logs,
    memory,
    panic_payload,
    payload_size,
    stack,
    static_call_stack,
    step,
)


class TestOperands:
    def test_call_operand_order(self):
        operands = call_operands("CALL", call_stack(VAULT, gas=1000, value=5, in_offset=32, in_size=4))
        assert operands.gas == 1000
        assert operands.to == VAULT
        assert operands.value == 5
        assert (operands.in_offset, operands.in_size) == (32, 4)

    def test_staticcall_has_no_value(self):
        operands = call_operands("STATICCALL", static_call_stack(VAULT, in_offset=64, in_size=36))
        assert operands.value == 0
        assert (operands.in_offset, operands.in_size) == (64, 36)

    def test_create2_salt(self):
        operands = create_operands("CREATE2", stack(0, 0, 10, 0x1234))
        assert operands.size == 10
        assert operands.salt == 0x1234
        assert create_operands("CREATE", stack(0, 0, 10)).salt is None


class TestGasAccounting:
    def test_gas_before_uses_previous_step(self):
        logs = [
            step("PUSH1", gas=1000, gas_cost=3),
            step("SSTORE", gas=997, gas_cost=2900, stack=stack(0, 1)),
            step("STOP", gas=80, gas_cost=0),
        ]
        result = parse_struct_logs(logs)
        sstore, stop = result.nodes
        assert sstore.gas_before == 1003
        assert sstore.gas_after == 997
        assert sstore.gas_cost == 6
        assert stop.gas_before == 997 + 2900
        assert stop.gas_cost == 3897 - 80

    def test_first_step_gas_before(self):
        result = parse_struct_logs([step("SSTORE", gas=500, gas_cost=20, stack=stack(0, 1))])
        assert result.nodes[0].gas_before == 520
        assert result.nodes[0].gas_cost == 20

    def test_gas_cost_never_negative(self):
        logs = [
            step("SLOAD", gas=100, gas_cost=0, stack=stack(0)),
            step("STOP", gas=200, gas_cost=0),
        ]
        assert parse_struct_logs(logs).nodes[1].gas_cost == 0

    def test_total_gas_cost_counts_exposed_nodes_only(self):
        result = parse_struct_logs(call_then_revert_logs())
        assert result.total_gas_cost == sum(node.gas_cost for node in result.nodes)


class TestFiltering:
    def test_internal_ops_dropped_but_counted(self):
        result = parse_struct_logs(call_then_revert_logs())
        assert [node.op for node in result.nodes] == ["CALL", "SLOAD", "SSTORE", "REVERT", "STOP"]
        assert result.total_steps == 7
        assert result.op_counts["PUSH1"] == 1
        assert result.op_counts["ISZERO"] == 1
        assert result.max_depth == 2

    def test_include_internal_ops(self):
        result = TraceTreeBuilder(include_internal_ops=True).build(call_then_revert_logs())
        assert len(result.nodes) == 7
        push = result.nodes[0]
        assert push.type == INTERNAL
        assert push.category == OpCategory.INTERNAL

    def test_ids_and_categories(self):
        result = parse_struct_logs(call_then_revert_logs())
        call = result.nodes[0]
        assert call.id == "1-1-CALL"
        assert call.step_index == 1
        assert call.category == OpCategory.CALL
        assert result.get_node("3-2-SSTORE").category == OpCategory.STORAGE
        assert result.get_node("missing") is None

    def test_empty_logs(self):
        result = parse_struct_logs([])
        assert result.nodes == []
        assert result.roots == []
        assert result.max_depth == 0
        assert result.total_steps == 0


class TestParentLinkage:
    def test_children_attach_to_last_node_one_level_up(self):
        result = parse_struct_logs(call_then_revert_logs())
        assert [root.op for root in result.roots] == ["CALL", "STOP"]
        call = result.roots[0]
        assert [child.op for child in call.children] == ["SLOAD", "SSTORE", "REVERT"]
        assert all(child.parent_id == call.id for child in call.children)
        assert result.roots[1].parent_id is None

    def test_dropped_step_hands_children_to_its_ancestor(self):
        logs = [
            step("CALL", depth=1, stack=call_stack(VAULT)),
            step("JUMPDEST", depth=2),
            step("SLOAD", depth=3, stack=stack(0)),
        ]
        result = parse_struct_logs(logs)
        sload = result.get_node("2-3-SLOAD")
        assert sload.parent_id == "0-1-CALL"
        assert result.roots[0].children == [sload]

    def test_orphan_without_ancestor_is_a_root(self):
        logs = [step("JUMPDEST", depth=1), step("SLOAD", depth=2, stack=stack(0))]
        result = parse_struct_logs(logs)
        assert [root.op for root in result.roots] == ["SLOAD"]

    def test_deterministic(self):
        assert parse_struct_logs(call_then_revert_logs()) == parse_struct_logs(call_then_revert_logs())


class TestEnrichment:
    def test_sload_reads_snapshot(self):
        result = parse_struct_logs(call_then_revert_logs())
        sload = result.get_node("2-2-SLOAD")
        assert sload.storage_slot == "0x0"
        assert sload.storage_value == "0x" + "0" * 63 + "5"

    def test_sload_bare_key_snapshot(self):
        logs = [step("SLOAD", stack=stack(0x10), storage={"10": "0x2a"})]
        assert parse_struct_logs(logs).nodes[0].storage_value == "0x2a"

    def test_sload_without_snapshot(self):
        logs = [step("SLOAD", stack=stack(0x10))]
        assert parse_struct_logs(logs).nodes[0].storage_value is None

    def test_sstore(self):
        result = parse_struct_logs(call_then_revert_logs())
        sstore = result.get_node("3-2-SSTORE")
        assert (sstore.storage_slot, sstore.storage_value) == ("0x0", "0x7")

    def test_revert_payload_is_decoded(self):
        result = parse_struct_logs(call_then_revert_logs("nope"))
        revert = result.get_node("4-2-REVERT")
        assert revert.decoded_error.reason == "nope"
        assert revert.input.startswith("0x08c379a0")

    def test_revert_without_payload(self):
        logs = [step("REVERT", stack=stack(0, 0))]
        node = parse_struct_logs(logs).nodes[0]
        assert node.decoded_error is None
        assert node.input is None

    def test_panic_revert(self):
        payload = panic_payload(0x01)
        logs = [step("REVERT", stack=stack(0, payload_size(payload)), memory=memory(payload))]
        assert parse_struct_logs(logs).nodes[0].decoded_error.panic_code == 1

    def test_call_details(self):
        logs = [step("CALL", stack=call_stack(VAULT, value=5, in_size=4), memory=memory("a9059cbb"))]
        node = parse_struct_logs(logs).nodes[0]
        assert node.to == VAULT
        assert node.value == "0x5"
        assert node.input == "0xa9059cbb"

    def test_zero_value_call_has_no_value(self):
        logs = [step("STATICCALL", stack=static_call_stack(VAULT))]
        node = parse_struct_logs(logs).nodes[0]
        assert node.value is None
        assert node.input is None

    def test_nested_call_is_made_from_the_entered_contract(self):
        logs = [
            step("CALL", depth=1, stack=call_stack(VAULT)),
            step("STATICCALL", depth=2, stack=static_call_stack(RECEIVER)),
        ]
        outer, inner = parse_struct_logs(logs).nodes
        assert outer.from_addr is None
        assert inner.from_addr == VAULT
        assert inner.to == RECEIVER

    def test_delegated_code_calls_from_the_delegating_contract(self):
        logs = [
            step("CALL", depth=1, stack=call_stack(VAULT)),
            step("DELEGATECALL", depth=2, stack=static_call_stack(TOKEN)),
            step("CALL", depth=3, stack=call_stack(RECEIVER)),
        ]
        nodes = parse_struct_logs(logs).nodes
        assert nodes[1].from_addr == VAULT
        assert nodes[2].from_addr == VAULT

    def test_return_data_is_the_node_output(self):
        data = "00" * 31 + "01"
        logs = [step("RETURN", stack=stack(0, 32), memory=memory(data))]
        assert parse_struct_logs(logs).nodes[0].output == "0x" + data

    def test_empty_return_has_no_output(self):
        logs = [step("RETURN", stack=stack(0, 0))]
        assert parse_struct_logs(logs).nodes[0].output is None

    def test_log_topics_and_data(self):
        data = "00" * 31 + "2a"
        logs = [step("LOG2", stack=stack(0, 32, 0xabc, 0xdef), memory=memory(data))]
        node = parse_struct_logs(logs).nodes[0]
        assert node.category == OpCategory.LOG
        assert node.event_data == "0x" + data
        assert node.event_topics == ["0x" + format(0xabc, "064x"), "0x" + format(0xdef, "064x")]

    def test_step_error_is_kept(self):
        logs = [step("SSTORE", stack=stack(0, 1), error="out of gas")]
        assert parse_struct_logs(logs).nodes[0].error == "out of gas"
