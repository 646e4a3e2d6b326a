"""
nwscript_blocks.block_graph
===========================

The block collection produced by the block builder.

A :class:`BlockGraph` owns its blocks and refers to the caller's
instruction list.  Blocks are addressed by their index in
:attr:`BlockGraph.blocks`; the first block, if any, is the entry.

Public API
----------
    BlockGraph     - the graph of basic blocks for one script
    graph_summary  - multi-line human-readable dump

Typical usage::

    from nwscript_blocks import build_graph, parse_listing

    graph = build_graph(parse_listing(open("foo.nss.lst").read()))
    for block in graph:
        for child, kind in graph.children_of(block):
            print(f"BB{block.index} -> BB{child.index} ({kind.value})")
    print(graph.to_dot())
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .block import Block, BlockEdgeType
from .errors import BlockContractError, ErrorCodes
from .instruction import Instruction
from .opcodes import BRANCH_OPCODES


# Maximum number of instructions shown in a DOT node label.
_DOT_LABEL_LINES = 12


class BlockGraph:
    """Basic blocks of one script, linked by typed edges.

    Attributes
    ----------
    instructions : sequence[Instruction]
        The instruction list the blocks index into.
    blocks : list[Block]
        All blocks, in creation order.
    """

    def __init__(self, instructions: Sequence[Instruction]) -> None:
        self.instructions = instructions
        self.blocks: List[Block] = []
        self._by_address: Dict[int, int] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_block(self, start_address: int) -> Block:
        """Create and register the block starting at *start_address*."""
        if start_address in self._by_address:
            raise BlockContractError(
                "a block already starts at this address",
                code=ErrorCodes.DUPLICATE_BLOCK,
                address=start_address,
            )
        block = Block(len(self.blocks), start_address)
        self.blocks.append(block)
        self._by_address[start_address] = block.index
        return block

    def link(self, parent: int, child: int, edge_type: BlockEdgeType) -> None:
        """Add an edge and wire up both ends."""
        self.blocks[parent].add_child(child, edge_type)
        self.blocks[child].parents.add(parent)

    # ----- queries ----------------------------------------------------------

    @property
    def entry(self) -> Optional[Block]:
        """The block holding the first instruction, ``None`` for an empty script."""
        return self.blocks[0] if self.blocks else None

    def block_at(self, address: int) -> Optional[Block]:
        """Return the block starting at *address*, or ``None``."""
        idx = self._by_address.get(address)
        return self.blocks[idx] if idx is not None else None

    def has_block_at(self, address: int) -> bool:
        return address in self._by_address

    def block_of(self, instruction: Instruction) -> Optional[Block]:
        """Return the block containing *instruction*, or ``None`` if unreached."""
        if instruction.block is None:
            return None
        return self.blocks[instruction.block]

    def instructions_of(self, block: Block) -> List[Instruction]:
        return [self.instructions[i] for i in block.instructions]

    def children_of(self, block: Block) -> List[Tuple[Block, BlockEdgeType]]:
        return [(self.blocks[c], t) for c, t in block.edges()]

    def parents_of(self, block: Block) -> List[Block]:
        """Parents of *block*, ordered by start address."""
        return sorted(
            (self.blocks[p] for p in block.parents),
            key=lambda b: b.start_address,
        )

    def edges(self) -> Iterator[Tuple[Block, Block, BlockEdgeType]]:
        """Yield every ``(source, destination, kind)`` edge."""
        for block in self.blocks:
            for child, kind in block.edges():
                yield block, self.blocks[child], kind

    def reachable_from(self, start: Block) -> Set[int]:
        """Return indices of the blocks reachable from *start*, *start* included."""
        visited: Set[int] = set()
        worklist = [start.index]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            worklist.extend(self.blocks[n].children)
        return visited

    def unreached_instructions(self) -> List[Instruction]:
        """Instructions that no block claimed (dead code)."""
        return [i for i in self.instructions if i.block is None]

    # ----- invariants -------------------------------------------------------

    def check_invariants(self) -> List[str]:
        """Return a list of invariant violations (empty if the graph is sound)."""
        problems: List[str] = []
        seen_addresses: Set[int] = set()
        owner: Dict[int, int] = {}

        for block in self.blocks:
            tag = f"BB{block.index}"
            if block.start_address in seen_addresses:
                problems.append(f"{tag}: second block at 0x{block.start_address:08X}")
            seen_addresses.add(block.start_address)

            if len(block.children) != len(block.children_types):
                problems.append(f"{tag}: children and children_types differ in length")

            if not block.instructions:
                problems.append(f"{tag}: empty block")
                continue

            first = self.instructions[block.first_instruction]
            if first.address != block.start_address:
                problems.append(f"{tag}: start address does not match first instruction")

            for pos, idx in enumerate(block.instructions):
                instr = self.instructions[idx]
                if idx in owner:
                    problems.append(
                        f"{tag}: 0x{instr.address:08X} also in BB{owner[idx]}"
                    )
                owner[idx] = block.index
                if instr.block != block.index:
                    problems.append(
                        f"{tag}: 0x{instr.address:08X} points at block {instr.block}"
                    )
                is_last = pos == len(block.instructions) - 1
                if not is_last:
                    if instr.opcode in BRANCH_OPCODES:
                        problems.append(
                            f"{tag}: {instr.mnemonic} at 0x{instr.address:08X} "
                            f"is not the last instruction"
                        )
                    if instr.follower != block.instructions[pos + 1]:
                        problems.append(
                            f"{tag}: 0x{instr.address:08X} not contiguous with its successor"
                        )

            for child in block.children:
                if block.index not in self.blocks[child].parents:
                    problems.append(f"{tag}: child BB{child} does not list it as parent")
            for parent in block.parents:
                if block.index not in self.blocks[parent].children:
                    problems.append(f"{tag}: parent BB{parent} does not list it as child")

        return problems

    # ----- serialisation helpers --------------------------------------------

    def label(self, block: Block) -> str:
        """Return a compact, multi-line label for *block*."""
        lines = [
            f"{self.instructions[i].address:08X} {self.instructions[i].text()}"
            for i in block.instructions[:_DOT_LABEL_LINES]
        ]
        if len(block.instructions) > _DOT_LABEL_LINES:
            lines.append("…")
        return "\n".join(lines)

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this graph."""
        lines = ["digraph NWScript {"]
        if title:
            escaped = title.replace("\\", "\\\\").replace('"', '\\"')
            lines.append(f'  label="{escaped}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for b in self.blocks:
            lbl = self.label(b).replace('"', '\\"').replace("\n", "\\l")
            color = ""
            if b.index == 0:
                color = ', style=filled, fillcolor="#ccffcc"'
            elif b.is_exit:
                color = ', style=filled, fillcolor="#ffcccc"'
            lines.append(f'  BB{b.index} [label="BB{b.index}\\l{lbl}\\l"{color}];')
        for src, dst, kind in self.edges():
            style = ""
            if kind == BlockEdgeType.CONDITIONAL_TRUE:
                style = ', color=green, fontcolor=green'
            elif kind == BlockEdgeType.CONDITIONAL_FALSE:
                style = ', color=red, fontcolor=red'
            elif kind in (BlockEdgeType.FUNCTION_CALL, BlockEdgeType.STORE_STATE):
                style = ', style=dashed, color=blue, fontcolor=blue'
            elif kind == BlockEdgeType.FUNCTION_RETURN:
                style = ', style=dotted'
            lines.append(
                f'  BB{src.index} -> BB{dst.index} '
                f'[label="{kind.value}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    # ----- container protocol -----------------------------------------------

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    def __repr__(self) -> str:
        nedges = sum(len(b.children) for b in self.blocks)
        return (
            f"BlockGraph(instructions={len(self.instructions)}, "
            f"blocks={len(self.blocks)}, edges={nedges})"
        )


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def graph_summary(graph: BlockGraph) -> str:
    """Return a multi-line human-readable summary of *graph*."""
    lines = [repr(graph)]
    for block in graph:
        succ = ", ".join(
            f"BB{child.index}({kind.value})" for child, kind in graph.children_of(block)
        )
        pred = ", ".join(f"BB{p.index}" for p in graph.parents_of(block))
        lines.append(
            f"  BB{block.index} @0x{block.start_address:08X} "
            f"instructions={len(block)}  "
            f"succ=[{succ}]  "
            f"pred=[{pred}]"
        )
    return "\n".join(lines)
