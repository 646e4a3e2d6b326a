# tests/test_block_graph.py
"""Tests for BlockGraph queries, invariant checks and text output."""

import pytest

from nwscript_blocks.block import Block, BlockEdgeType
from nwscript_blocks.block_builder import build_graph
from nwscript_blocks.block_graph import BlockGraph, graph_summary
from nwscript_blocks.errors import BlockContractError, ErrorCodes
from nwscript_blocks.opcodes import Opcode
from tests.conftest import make_script


class TestBlock:

    def test_new_block_is_empty(self):
        block = Block(0, 0x10)
        assert len(block) == 0
        assert block.first_instruction is None
        assert block.last_instruction is None
        assert block.is_exit

    def test_edges_pair_children_with_kinds(self):
        block = Block(0, 0)
        block.add_child(2, BlockEdgeType.CONDITIONAL_TRUE)
        block.add_child(1, BlockEdgeType.CONDITIONAL_FALSE)
        assert list(block.edges()) == [
            (2, BlockEdgeType.CONDITIONAL_TRUE),
            (1, BlockEdgeType.CONDITIONAL_FALSE),
        ]

    def test_repr(self):
        assert repr(Block(3, 0x20)) == (
            "Block(#3, start=0x00000020, ninstr=0, nchildren=0)"
        )


class TestQueries:

    def test_block_lookup(self, loop_graph):
        assert loop_graph.block_at(1).index == 2
        assert loop_graph.block_at(5) is None
        assert loop_graph.has_block_at(2)
        assert not loop_graph.has_block_at(3)

    def test_block_of(self, loop_graph):
        second = loop_graph.instructions[1]
        assert loop_graph.block_of(second) is loop_graph.block_at(1)

    def test_instructions_of(self, program_graph):
        block = program_graph.block_at(0x04)
        assert [i.mnemonic for i in program_graph.instructions_of(block)] == [
            "DECSPI", "JMP",
        ]

    def test_parents_ordered_by_address(self, program_graph):
        loop_head = program_graph.block_at(0x02)
        assert [p.start_address for p in program_graph.parents_of(loop_head)] == [
            0x01, 0x04,
        ]

    def test_edges(self, loop_graph):
        edges = [(s.start_address, d.start_address, k) for s, d, k in loop_graph.edges()]
        assert edges == [
            (0, 2, BlockEdgeType.CONDITIONAL_TRUE),
            (0, 1, BlockEdgeType.CONDITIONAL_FALSE),
            (1, 0, BlockEdgeType.UNCONDITIONAL),
        ]

    def test_reachable_from(self, program_graph):
        assert program_graph.reachable_from(program_graph.entry) == set(
            range(len(program_graph))
        )
        helper = program_graph.block_at(0x10)
        reached = {program_graph[i].start_address
                   for i in program_graph.reachable_from(helper)}
        assert reached == {0x10, 0x12, 0x13}

    def test_container_protocol(self, loop_graph):
        assert len(loop_graph) == 3
        assert loop_graph[0] is loop_graph.entry
        assert [b.index for b in loop_graph] == [0, 1, 2]
        assert repr(loop_graph) == "BlockGraph(instructions=3, blocks=3, edges=3)"


class TestMutation:

    def test_duplicate_block_refused(self):
        graph = BlockGraph([])
        graph.add_block(0x10)
        with pytest.raises(BlockContractError) as info:
            graph.add_block(0x10)
        assert info.value.code == ErrorCodes.DUPLICATE_BLOCK

    def test_link_wires_both_ends(self):
        graph = BlockGraph([])
        a = graph.add_block(0)
        b = graph.add_block(4)
        graph.link(a.index, b.index, BlockEdgeType.FUNCTION_CALL)
        assert a.children == [b.index]
        assert a.children_types == [BlockEdgeType.FUNCTION_CALL]
        assert b.parents == {a.index}


class TestInvariantCheck:

    def test_sound_graph(self, loop_graph):
        assert loop_graph.check_invariants() == []

    def test_empty_block_reported(self):
        graph = BlockGraph([])
        graph.add_block(0)
        assert graph.check_invariants() == ["BB0: empty block"]

    def test_asymmetric_edge_reported(self, loop_graph):
        loop_graph.block_at(2).parents.clear()
        problems = loop_graph.check_invariants()
        assert any("does not list it as parent" in p for p in problems)

    def test_mismatched_children_types_reported(self, loop_graph):
        loop_graph.entry.children_types.pop()
        problems = loop_graph.check_invariants()
        assert "BB0: children and children_types differ in length" in problems

    def test_non_contiguous_block_reported(self):
        instructions = make_script(
            (0, Opcode.NOP), (1, Opcode.NOP), (2, Opcode.RETN),
        )
        graph = build_graph(instructions)
        graph.entry.instructions.remove(1)
        problems = graph.check_invariants()
        assert any("not contiguous" in p for p in problems)

    def test_branch_in_middle_reported(self, loop_graph):
        # Prepend the loop head's JZ to the loop body.
        body = loop_graph.block_at(1)
        body.instructions.insert(0, 0)
        problems = loop_graph.check_invariants()
        assert any("is not the last instruction" in p for p in problems)
        assert any("also in BB0" in p for p in problems)


class TestTextOutput:

    def test_label(self, program_graph):
        label = program_graph.label(program_graph.block_at(0x06))
        assert label == "00000006 STORESTATE 0x0000000C"

    def test_long_label_is_truncated(self):
        rows = [(addr, Opcode.NOP) for addr in range(20)] + [(20, Opcode.RETN)]
        graph = build_graph(make_script(*rows))
        lines = graph.label(graph.entry).split("\n")
        assert len(lines) == 13
        assert lines[-1] == "…"

    def test_to_dot(self, loop_graph):
        dot = loop_graph.to_dot(title="loop")
        assert dot.startswith("digraph NWScript {")
        assert 'label="loop";' in dot
        assert 'BB0 -> BB1 [label="conditional-true", color=green' in dot
        assert 'BB0 -> BB2 [label="conditional-false", color=red' in dot
        assert 'BB2 -> BB0 [label="unconditional"];' in dot
        assert dot.rstrip().endswith("}")

    def test_to_dot_escapes_title(self, loop_graph):
        dot = loop_graph.to_dot(title='say "hi"')
        assert 'label="say \\"hi\\"";' in dot

    def test_summary(self, loop_graph):
        summary = graph_summary(loop_graph).splitlines()
        assert summary[0] == repr(loop_graph)
        assert summary[1].strip().startswith("BB0 @0x00000000 instructions=1")
        assert "succ=[BB1(conditional-true), BB2(conditional-false)]" in summary[1]
        assert "pred=[BB2]" in summary[1]
