# tests/conftest.py
"""
Shared helpers and sample scripts for the nwscript_blocks tests.

Scripts are written either as listings (parsed with ``parse_listing``) or
as rows of ``(address, opcode[, destination])`` passed to ``make_script``.
``make_raw`` skips linking entirely so a test can hand-craft ``branches``
and address types.
"""

from typing import List, Optional, Sequence, Tuple

import pytest

from nwscript_blocks.block_builder import BuildConfig, build_graph
from nwscript_blocks.block_graph import BlockGraph
from nwscript_blocks.instruction import Instruction, link_instructions
from nwscript_blocks.opcodes import AddressType, Opcode


# ── Script builders ──────────────────────────────────────────────

def make_script(*rows: Tuple) -> List[Instruction]:
    """Build linked instructions from ``(address, opcode[, destination])`` rows."""
    instructions = []
    for row in rows:
        address, opcode = row[0], row[1]
        targets = (row[2],) if len(row) > 2 else ()
        instructions.append(Instruction(address, opcode, targets=targets))
    return link_instructions(instructions)


def make_raw(
    rows: Sequence[Tuple[int, Opcode, Sequence[int]]],
    address_types: Optional[dict] = None,
) -> List[Instruction]:
    """Build unlinked instructions with explicit branch indices.

    Followers point at the next row; *address_types* maps addresses to an
    ``AddressType``.  Everything else is left ``NONE``.
    """
    address_types = address_types or {}
    instructions = []
    for idx, (address, opcode, branches) in enumerate(rows):
        follower = idx + 1 if idx + 1 < len(rows) else None
        instructions.append(Instruction(
            address,
            opcode,
            address_type=address_types.get(address, AddressType.NONE),
            branches=list(branches),
            follower=follower,
        ))
    return instructions


def build(instructions: Sequence[Instruction], **config) -> BlockGraph:
    return build_graph(instructions, BuildConfig(**config))


def child_summary(graph: BlockGraph, address: int) -> List[Tuple[int, str]]:
    """``[(child start address, edge kind value), ...]`` for the block at *address*."""
    block = graph.block_at(address)
    return [
        (child.start_address, kind.value)
        for child, kind in graph.children_of(block)
    ]


# ── Sample listings ──────────────────────────────────────────────

LOOP_LISTING = """
; while (x) { }
0: JZ 2
1: JMP 0
2: RETN
"""

STRAIGHT_LISTING = """
0x00  RSADDI
0x01  CONSTI 1
0x02  CONSTI 2
0x03  ADDII
0x04  MOVSP -4
0x05  RETN
"""

# main() calls a helper, loops while a flag is set, stores a delayed
# action, then returns.
PROGRAM_LISTING = """
0x00  JSR     0x10          ; call helper
0x01  CONSTI  3
0x02  CPTOPSP -4, 4         ; loop head
0x03  JNZ     0x06
0x04  DECSPI  -4
0x05  JMP     0x02
0x06  STORESTATE 0x0C, 16, 0
0x07  JMP     0x0E
0x0C  ACTION  7, 1          ; delayed body
0x0D  RETN
0x0E  MOVSP   -4
0x0F  RETN
0x10  RSADDI                ; helper
0x11  JZ      0x13
0x12  CONSTI  1
0x13  RETN
"""


@pytest.fixture
def loop_graph() -> BlockGraph:
    from nwscript_blocks.listing import parse_listing
    return build_graph(parse_listing(LOOP_LISTING))


@pytest.fixture
def program_graph() -> BlockGraph:
    from nwscript_blocks.listing import parse_listing
    return build_graph(parse_listing(PROGRAM_LISTING))
