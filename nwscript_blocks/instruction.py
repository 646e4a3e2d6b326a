"""
nwscript_blocks.instruction
===========================

The decoded-instruction model consumed by the block builder.

Instructions live in one ordered list (the *instruction arena*).  All links
between instructions, and from an instruction to its block, are integer
indices: ``branches`` and ``follower`` index into the instruction list,
``block`` indexes into :attr:`BlockGraph.blocks`.

Public API
----------
    Instruction         - one decoded instruction
    link_instructions   - resolve decoded destinations into branch indices
    check_instructions  - validate a list against the builder's contract
    find_instruction    - look up an instruction by address

Typical usage::

    from nwscript_blocks.instruction import Instruction, link_instructions
    from nwscript_blocks.opcodes import Opcode

    script = link_instructions([
        Instruction(0, Opcode.JZ, targets=(2,)),
        Instruction(1, Opcode.JMP, targets=(0,)),
        Instruction(2, Opcode.RETN),
    ])
"""

from __future__ import annotations

import bisect
import logging
from typing import Any, List, Optional, Sequence, Tuple

from .errors import BlockContractError, ErrorCodes, MalformedScriptError
from .opcodes import (
    AddressType,
    BRANCH_OPCODES,
    FOLLOWER_OPCODES,
    Opcode,
    TARGET_OPCODES,
    branch_arity,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Instruction
# ---------------------------------------------------------------------------

class Instruction:
    """A single decoded NWScript instruction.

    Attributes
    ----------
    address : int
        Byte offset of the instruction in the script.  Unique; the ordering
        and identity key.
    opcode : Opcode
    type_tag : str
        Operand-type suffix as it appears in a listing (``"II"``, ``"F"``, …).
    arguments : tuple
        Decoded operands, for display only.
    targets : tuple[int, ...]
        Destination addresses as decoded, before :func:`link_instructions`.
    address_type : AddressType
        Whether this address is a jump destination or subroutine start.
    branches : list[int]
        Indices of the branch destinations.
    follower : int or None
        Index of the next instruction in program order.
    block : int or None
        Index of the owning block.  Set once by the block builder.
    """

    __slots__ = (
        "address",
        "opcode",
        "type_tag",
        "arguments",
        "targets",
        "address_type",
        "branches",
        "follower",
        "_block",
    )

    def __init__(
        self,
        address: int,
        opcode: Opcode,
        type_tag: str = "",
        arguments: Tuple[Any, ...] = (),
        targets: Tuple[int, ...] = (),
        address_type: AddressType = AddressType.NONE,
        branches: Optional[List[int]] = None,
        follower: Optional[int] = None,
    ) -> None:
        self.address = address
        self.opcode = Opcode(opcode)
        self.type_tag = type_tag
        self.arguments = tuple(arguments)
        self.targets = tuple(targets)
        self.address_type = address_type
        self.branches: List[int] = list(branches) if branches is not None else []
        self.follower = follower
        self._block: Optional[int] = None

    # ----- block back-link --------------------------------------------------

    @property
    def block(self) -> Optional[int]:
        """Index of the owning block, or ``None`` if never reached."""
        return self._block

    def assign_block(self, block_index: int) -> None:
        """Record the owning block.  An instruction is assigned exactly once."""
        if self._block is not None:
            raise BlockContractError(
                f"instruction already belongs to block {self._block}, "
                f"refusing to move it to block {block_index}",
                code=ErrorCodes.BLOCK_REASSIGNED,
                address=self.address,
            )
        self._block = block_index

    # ----- helpers ----------------------------------------------------------

    @property
    def mnemonic(self) -> str:
        return self.opcode.name + self.type_tag

    @property
    def is_branch(self) -> bool:
        return self.opcode in BRANCH_OPCODES

    def text(self) -> str:
        """Listing-style text: ``"JZ 0x00000002"``, ``"CONSTI 5"``."""
        parts = [self.mnemonic]
        if self.opcode in TARGET_OPCODES and self.targets:
            parts.append(f"0x{self.targets[0]:08X}")
        else:
            parts.extend(_format_argument(a) for a in self.arguments)
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"Instruction(0x{self.address:08X}, {self.mnemonic})"

    def __hash__(self) -> int:
        return hash(self.address)

    def __eq__(self, other) -> bool:
        if isinstance(other, Instruction):
            return self.address == other.address
        return NotImplemented


def _format_argument(value: Any) -> str:
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return str(value)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def find_instruction(
    instructions: Sequence[Instruction],
    address: int,
) -> Optional[int]:
    """Return the index of the instruction at *address*, or ``None``.

    *instructions* must be sorted by address.
    """
    addresses = _AddressView(instructions)
    pos = bisect.bisect_left(addresses, address)
    if pos < len(addresses) and addresses[pos] == address:
        return pos
    return None


class _AddressView:
    """Read-only sequence of the addresses of an instruction list."""

    __slots__ = ("_instructions",)

    def __init__(self, instructions: Sequence[Instruction]) -> None:
        self._instructions = instructions

    def __len__(self) -> int:
        return len(self._instructions)

    def __getitem__(self, pos: int) -> int:
        return self._instructions[pos].address


# ---------------------------------------------------------------------------
# Linking
# ---------------------------------------------------------------------------

def link_instructions(instructions: Sequence[Instruction]) -> List[Instruction]:
    """Resolve decoded destination addresses into branch and follower indices.

    The list is sorted by address.  Every instruction gets the next one as
    its ``follower``.  For the branch opcodes, ``targets[0]`` is looked up
    and stored in ``branches``; conditional jumps also get their follower
    as the second branch (taken destination first, fall-through second).
    Destinations are marked as jump destinations or subroutine starts.

    Raises
    ------
    MalformedScriptError
        A destination address is not in the script, or a branch opcode has
        no decoded destination.
    """
    ordered = sorted(instructions, key=lambda i: i.address)
    addresses = [i.address for i in ordered]
    index_of = {addr: idx for idx, addr in enumerate(addresses)}
    if len(index_of) != len(addresses):
        dup = next(a for a in addresses if addresses.count(a) > 1)
        raise MalformedScriptError(
            "two instructions share one address",
            code=ErrorCodes.UNSORTED_ADDRESSES,
            address=dup,
        )

    for idx, instr in enumerate(ordered):
        instr.follower = idx + 1 if idx + 1 < len(ordered) else None
        instr.branches = []

    for idx, instr in enumerate(ordered):
        if instr.opcode not in TARGET_OPCODES:
            continue
        if not instr.targets:
            raise MalformedScriptError(
                f"{instr.opcode.name} has no destination",
                code=ErrorCodes.UNKNOWN_DESTINATION,
                address=instr.address,
            )
        dest = index_of.get(instr.targets[0])
        if dest is None:
            raise MalformedScriptError(
                f"{instr.opcode.name} destination 0x{instr.targets[0]:08X} "
                f"is not the address of an instruction",
                code=ErrorCodes.UNKNOWN_DESTINATION,
                address=instr.address,
            )
        instr.branches.append(dest)

        if instr.opcode in (Opcode.JSR, Opcode.STORESTATE):
            ordered[dest].address_type = AddressType.SUBROUTINE_START
        else:
            # A subroutine start stays a subroutine start even if jumped to.
            if ordered[dest].address_type is AddressType.NONE:
                ordered[dest].address_type = AddressType.JUMP_DESTINATION

        if instr.opcode in (Opcode.JZ, Opcode.JNZ):
            if instr.follower is None:
                raise MalformedScriptError(
                    f"{instr.opcode.name} is the last instruction and has "
                    f"nothing to fall through to",
                    code=ErrorCodes.MISSING_FOLLOWER,
                    address=instr.address,
                )
            instr.branches.append(instr.follower)

    logger.debug("Linked %d instructions", len(ordered))
    return ordered


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def check_instructions(instructions: Sequence[Instruction]) -> None:
    """Validate *instructions* against the block builder's input contract.

    This is the caller-side check: a script that fails it is reported as
    malformed before any block is built.

    Raises
    ------
    MalformedScriptError
        On the first violation found.
    """
    count = len(instructions)
    previous: Optional[int] = None

    def in_range(ref: int) -> bool:
        return 0 <= ref < count

    for idx, instr in enumerate(instructions):
        if previous is not None and instr.address <= previous:
            raise MalformedScriptError(
                f"address follows 0x{previous:08X} out of order",
                code=ErrorCodes.UNSORTED_ADDRESSES,
                address=instr.address,
            )
        previous = instr.address

        # Only the last instruction may lack a follower.
        expected_follower = idx + 1 if idx + 1 < count else None
        if instr.follower != expected_follower:
            if instr.follower is not None and not in_range(instr.follower):
                raise MalformedScriptError(
                    f"follower index {instr.follower} outside the script",
                    code=ErrorCodes.BAD_REFERENCE,
                    address=instr.address,
                )
            raise MalformedScriptError(
                f"follower index {instr.follower} is not the next "
                f"instruction ({expected_follower})",
                code=ErrorCodes.BAD_FOLLOWER,
                address=instr.address,
            )

        for ref in instr.branches:
            if not in_range(ref):
                raise MalformedScriptError(
                    f"branch index {ref} outside the script",
                    code=ErrorCodes.BAD_REFERENCE,
                    address=instr.address,
                )

        expected = branch_arity(instr.opcode)
        if len(instr.branches) != expected:
            raise MalformedScriptError(
                f"{instr.opcode.name} carries {len(instr.branches)} "
                f"branch(es), expected {expected}",
                code=ErrorCodes.ARITY_MISMATCH,
                address=instr.address,
            )

        if instr.opcode in (Opcode.JZ, Opcode.JNZ) and instr.branches[1] != instr.follower:
            raise MalformedScriptError(
                f"{instr.opcode.name} falls through to index {instr.branches[1]}, "
                f"not its follower ({instr.follower})",
                code=ErrorCodes.BAD_FOLLOWER,
                address=instr.address,
            ).with_hint("conditional branches are [destination, follower]")

        if instr.opcode in FOLLOWER_OPCODES and instr.follower is None:
            raise MalformedScriptError(
                f"{instr.opcode.name} has no instruction to return to",
                code=ErrorCodes.MISSING_FOLLOWER,
                address=instr.address,
            ).with_hint("a script should end in RETN")
