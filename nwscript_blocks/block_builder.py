"""
nwscript_blocks.block_builder
=============================

Partitions a decoded NWScript instruction list into basic blocks and links
them with typed control-flow edges.

Public API
----------
    BuildConfig   - knobs for :func:`build_graph`
    build_graph   - build the :class:`BlockGraph` of a script

Typical usage::

    from nwscript_blocks.block_builder import build_graph
    from nwscript_blocks.listing import parse_listing

    graph = build_graph(parse_listing(text))
    print(graph.entry, len(graph))

Implementation notes
--------------------
* Construction starts at the first instruction and follows control flow
  only; instructions nothing branches or falls into never get a block.
* Pending work is a FIFO queue of *(instruction, block)* pairs: "extend
  this block starting at this instruction".  A block is queued exactly
  once, when it is created, so no block is extended twice and the queue
  drains after at most one task per block.
* The address -> block map inside :class:`BlockGraph` is the only record
  of which addresses already have a block.  Every merge and every loop
  back-edge is found by consulting it before queueing anything.
* Edges are added in branch order as each branch is reached, so the
  children of a block always follow the order of its final instruction's
  branches, independent of queue order.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .block import BlockEdgeType
from .block_graph import BlockGraph
from .errors import BlockContractError, ErrorCodes, GraphInvariantError
from .instruction import Instruction, check_instructions
from .opcodes import AddressType, BRANCH_OPCODES, FOLLOWER_OPCODES, Opcode, branch_arity

logger = logging.getLogger(__name__)


# Edge kinds for each branch opcode, in the order its destinations are
# visited: ``branches`` first, then the follower for calls.
_BRANCH_EDGES: Dict[Opcode, Tuple[BlockEdgeType, ...]] = {
    Opcode.JMP: (BlockEdgeType.UNCONDITIONAL,),
    Opcode.JZ: (BlockEdgeType.CONDITIONAL_TRUE, BlockEdgeType.CONDITIONAL_FALSE),
    Opcode.JNZ: (BlockEdgeType.CONDITIONAL_TRUE, BlockEdgeType.CONDITIONAL_FALSE),
    Opcode.JSR: (BlockEdgeType.FUNCTION_CALL, BlockEdgeType.FUNCTION_RETURN),
    Opcode.STORESTATE: (BlockEdgeType.STORE_STATE, BlockEdgeType.FUNCTION_RETURN),
    Opcode.RETN: (),
}


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class BuildConfig:
    """Knobs for :func:`build_graph`.

    check_input
        Validate the instruction list with :func:`check_instructions` first,
        so a malformed script is reported as ``MalformedScriptError`` before
        any block exists.
    verify_graph
        Run :meth:`BlockGraph.check_invariants` on the result and raise
        ``GraphInvariantError`` if it reports anything.
    """
    check_input: bool = True
    verify_graph: bool = False

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if not isinstance(self.check_input, bool):
            warnings.append("check_input must be a bool")
        if not isinstance(self.verify_graph, bool):
            warnings.append("verify_graph must be a bool")
        return warnings


# ===========================================================================
# BLOCK BUILDER
# ===========================================================================

class _BlockBuilder:
    """Internal builder that constructs the block graph of one script."""

    def __init__(self, instructions: Sequence[Instruction]) -> None:
        self.instructions = instructions
        self.graph = BlockGraph(instructions)
        self._queue: Deque[Tuple[int, int]] = deque()

    # ----- main build -------------------------------------------------------

    def build(self) -> BlockGraph:
        if not self.instructions:
            return self.graph

        claimed = next((i for i in self.instructions if i.block is not None), None)
        if claimed is not None:
            raise BlockContractError(
                "instruction list already belongs to a block graph",
                code=ErrorCodes.BLOCK_REASSIGNED,
                address=claimed.address,
            ).with_hint("decode the script again to build a second graph")

        self._obtain_block(0)
        while self._queue:
            instr_index, block_index = self._queue.popleft()
            self._extend(instr_index, block_index)

        logger.debug(
            "Constructed %d blocks from %d instructions",
            len(self.graph), len(self.instructions),
        )
        return self.graph

    # ----- block discovery --------------------------------------------------

    def _obtain_block(self, instr_index: int) -> int:
        """Return the block that starts at *instr_index*, creating it if needed.

        A new block is queued for extension; an existing one is not.
        """
        instr = self.instructions[instr_index]
        existing = self.graph.block_at(instr.address)
        if existing is not None:
            return existing.index

        if instr.block is not None:
            # Reached earlier by fall-through without being marked as a
            # destination: it is already in the middle of another block.
            return instr.block

        block = self.graph.add_block(instr.address)
        self._queue.append((instr_index, block.index))
        logger.debug("New block BB%d at 0x%08X", block.index, instr.address)
        return block.index

    def _link(self, parent: int, child: int, edge_type: BlockEdgeType) -> None:
        self.graph.link(parent, child, edge_type)
        logger.debug("Edge BB%d -> BB%d (%s)", parent, child, edge_type.value)

    # ----- linear extension -------------------------------------------------

    def _extend(self, instr_index: int, block_index: int) -> None:
        """Append instructions to a block until control flow leaves it."""
        block = self.graph[block_index]
        current: Optional[int] = instr_index

        while current is not None:
            instr = self.instructions[current]

            if instr.block is not None:
                # Ran into an existing block: merge point or loop.
                self._link(block_index, instr.block, BlockEdgeType.UNCONDITIONAL)
                return

            if block.instructions and (
                instr.address_type is not AddressType.NONE
                or self.graph.has_block_at(instr.address)
            ):
                # A legal block start in the middle of our run: hand off.
                target = self._obtain_block(current)
                self._link(block_index, target, BlockEdgeType.UNCONDITIONAL)
                return

            block.instructions.append(current)
            instr.assign_block(block_index)

            if instr.opcode in BRANCH_OPCODES:
                self._branch_out(instr, block_index)
                return

            current = instr.follower

    # ----- branches ---------------------------------------------------------

    def _branch_out(self, instr: Instruction, block_index: int) -> None:
        """Link a block ending in *instr* to each of its destinations."""
        edge_types = _BRANCH_EDGES.get(instr.opcode)
        if edge_types is None:
            raise BlockContractError(
                f"{instr.opcode.name} does not influence control flow",
                code=ErrorCodes.NOT_A_BRANCH,
                address=instr.address,
            )

        expected = branch_arity(instr.opcode)
        if len(instr.branches) != expected:
            raise BlockContractError(
                f"{instr.opcode.name} carries {len(instr.branches)} "
                f"branch(es), expected {expected}",
                code=ErrorCodes.BRANCH_ARITY,
                address=instr.address,
            )

        destinations = list(instr.branches)
        if instr.opcode in FOLLOWER_OPCODES:
            if instr.follower is None:
                raise BlockContractError(
                    f"{instr.opcode.name} has no follower to return to",
                    code=ErrorCodes.BRANCH_ARITY,
                    address=instr.address,
                )
            destinations.append(instr.follower)

        for dest, edge_type in zip(destinations, edge_types):
            target = self._obtain_block(dest)
            self._link(block_index, target, edge_type)


# ===========================================================================
# PUBLIC API
# ===========================================================================

def build_graph(
    instructions: Sequence[Instruction],
    config: Optional[BuildConfig] = None,
) -> BlockGraph:
    """Build the :class:`BlockGraph` of a script.

    Parameters
    ----------
    instructions : sequence of Instruction
        Sorted by address, with ``branches`` and ``follower`` resolved to
        indices into this same sequence (see
        :func:`~nwscript_blocks.instruction.link_instructions`).  Each
        instruction's ``block`` must still be unset.
    config : BuildConfig, optional

    Returns
    -------
    BlockGraph
        ``graph.blocks`` and ``graph.entry``.  An empty script yields an
        empty graph whose entry is ``None``.

    Raises
    ------
    MalformedScriptError
        ``config.check_input`` is set and the list violates the contract.
    BlockContractError
        A branch instruction has the wrong arity (construction is aborted).
    GraphInvariantError
        ``config.verify_graph`` is set and the result is inconsistent.
    """
    config = config or BuildConfig()
    for warning in config.validate():
        logger.warning("BuildConfig: %s", warning)

    if config.check_input:
        check_instructions(instructions)

    graph = _BlockBuilder(instructions).build()

    if config.verify_graph:
        problems = graph.check_invariants()
        if problems:
            raise GraphInvariantError(problems)
    return graph
