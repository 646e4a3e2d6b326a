"""
nwscript_blocks.block
=====================

Basic blocks and the kinds of edge that connect them.

A :class:`Block` never holds objects of other blocks or instructions, only
their indices; the owning :class:`~nwscript_blocks.block_graph.BlockGraph`
resolves them.
"""

from __future__ import annotations

import enum
from typing import Iterator, List, Optional, Set, Tuple


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------

class BlockEdgeType(enum.Enum):
    """Why control can pass from one block to another."""

    UNCONDITIONAL     = "unconditional"
    CONDITIONAL_TRUE  = "conditional-true"
    CONDITIONAL_FALSE = "conditional-false"
    FUNCTION_CALL     = "function-call"
    FUNCTION_RETURN   = "function-return"
    STORE_STATE       = "store-state"


# ---------------------------------------------------------------------------
# Block
# ---------------------------------------------------------------------------

class Block:
    """A basic block of NWScript instructions.

    Attributes
    ----------
    index : int
        Position of this block in its graph's block list.
    start_address : int
        Address of the first instruction.
    instructions : list[int]
        Indices of the member instructions, in program order.
    parents : set[int]
        Indices of the blocks that have an edge into this one.
    children : list[int]
        Indices of the blocks this one has an edge to, in branch order.
    children_types : list[BlockEdgeType]
        Kind of each edge in ``children``; always the same length.
    """

    __slots__ = (
        "index",
        "start_address",
        "instructions",
        "parents",
        "children",
        "children_types",
    )

    def __init__(self, index: int, start_address: int) -> None:
        self.index = index
        self.start_address = start_address
        self.instructions: List[int] = []
        self.parents: Set[int] = set()
        self.children: List[int] = []
        self.children_types: List[BlockEdgeType] = []

    def add_child(self, child: int, edge_type: BlockEdgeType) -> None:
        self.children.append(child)
        self.children_types.append(edge_type)

    def edges(self) -> Iterator[Tuple[int, BlockEdgeType]]:
        """Yield ``(child index, edge type)`` pairs in branch order."""
        return zip(self.children, self.children_types)

    @property
    def first_instruction(self) -> Optional[int]:
        return self.instructions[0] if self.instructions else None

    @property
    def last_instruction(self) -> Optional[int]:
        return self.instructions[-1] if self.instructions else None

    @property
    def is_exit(self) -> bool:
        """True if control never leaves this block for another one."""
        return not self.children

    def __len__(self) -> int:
        return len(self.instructions)

    def __repr__(self) -> str:
        return (
            f"Block(#{self.index}, start=0x{self.start_address:08X}, "
            f"ninstr={len(self.instructions)}, nchildren={len(self.children)})"
        )

    def __hash__(self) -> int:
        return hash(self.start_address)

    def __eq__(self, other) -> bool:
        if isinstance(other, Block):
            return self.start_address == other.start_address
        return NotImplemented
