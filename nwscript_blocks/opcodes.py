"""
nwscript_blocks.opcodes
=======================

The NWScript instruction vocabulary.

Every compiled NWScript instruction starts with a one-byte opcode followed
by a one-byte operand type.  Only a handful of opcodes influence control
flow; those are the ones the block builder cares about.

Public API
----------
    Opcode            - the full instruction set, valued by opcode byte
    AddressType       - why an address is a legal block start
    BRANCH_OPCODES    - opcodes that end a basic block
    BRANCH_ARITY      - number of ``branches`` each opcode carries
    FOLLOWER_OPCODES  - branch opcodes that also fall through
    opcode_from_mnemonic - split a listing mnemonic into opcode + type
"""

from __future__ import annotations

import enum
from typing import Dict, FrozenSet, Optional, Tuple


# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------

class Opcode(enum.IntEnum):
    """NWScript opcodes, valued by their byte in the bytecode stream."""

    CPDOWNSP      = 0x01
    RSADD         = 0x02
    CPTOPSP       = 0x03
    CONST         = 0x04
    ACTION        = 0x05
    LOGAND        = 0x06
    LOGOR         = 0x07
    INCOR         = 0x08
    EXCOR         = 0x09
    BOOLAND       = 0x0A
    EQ            = 0x0B
    NEQ           = 0x0C
    GEQ           = 0x0D
    GT            = 0x0E
    LT            = 0x0F
    LEQ           = 0x10
    SHLEFT        = 0x11
    SHRIGHT       = 0x12
    USHRIGHT      = 0x13
    ADD           = 0x14
    SUB           = 0x15
    MUL           = 0x16
    DIV           = 0x17
    MOD           = 0x18
    NEG           = 0x19
    COMP          = 0x1A
    MOVSP         = 0x1B
    STORESTATEALL = 0x1C
    JMP           = 0x1D
    JSR           = 0x1E
    JZ            = 0x1F
    RETN          = 0x20
    DESTRUCT      = 0x21
    NOT           = 0x22
    DECSP         = 0x23
    INCSP         = 0x24
    JNZ           = 0x25
    CPDOWNBP      = 0x26
    CPTOPBP       = 0x27
    DECBP         = 0x28
    INCBP         = 0x29
    SAVEBP        = 0x2A
    RESTOREBP     = 0x2B
    STORESTATE    = 0x2C
    NOP           = 0x2D
    # Dragon Age extensions
    WRITEARRAY    = 0x30
    READARRAY     = 0x32
    GETREF        = 0x37
    GETREFARRAY   = 0x39
    SCRIPTSIZE    = 0x42

    @property
    def is_branch(self) -> bool:
        """True if this opcode ends a basic block."""
        return self in BRANCH_OPCODES


# ---------------------------------------------------------------------------
# Address types
# ---------------------------------------------------------------------------

class AddressType(enum.Enum):
    """Why an instruction's address may start a block on its own."""

    NONE             = "none"
    JUMP_DESTINATION = "jump-destination"
    SUBROUTINE_START = "subroutine-start"


# ---------------------------------------------------------------------------
# Branch tables
# ---------------------------------------------------------------------------

BRANCH_OPCODES: FrozenSet[Opcode] = frozenset({
    Opcode.JMP,
    Opcode.JZ,
    Opcode.JNZ,
    Opcode.JSR,
    Opcode.RETN,
    Opcode.STORESTATE,
})

BRANCH_ARITY: Dict[Opcode, int] = {
    Opcode.JMP:        1,
    Opcode.JZ:         2,
    Opcode.JNZ:        2,
    Opcode.JSR:        1,
    Opcode.STORESTATE: 1,
    Opcode.RETN:       0,
}

# Branch opcodes whose block also continues at the following instruction.
FOLLOWER_OPCODES: FrozenSet[Opcode] = frozenset({Opcode.JSR, Opcode.STORESTATE})

# Opcodes whose first operand is an absolute destination address in a listing.
TARGET_OPCODES: FrozenSet[Opcode] = frozenset({
    Opcode.JMP,
    Opcode.JZ,
    Opcode.JNZ,
    Opcode.JSR,
    Opcode.STORESTATE,
})


def branch_arity(opcode: Opcode) -> int:
    """Number of ``branches`` an instruction with *opcode* must carry."""
    return BRANCH_ARITY.get(opcode, 0)


# Longest names first so STORESTATEALL wins over STORESTATE.
_NAMES_BY_LENGTH = sorted(Opcode.__members__, key=len, reverse=True)


def opcode_from_mnemonic(mnemonic: str) -> Optional[Tuple[Opcode, str]]:
    """Split a listing mnemonic such as ``"ADDII"`` into ``(Opcode.ADD, "II")``.

    Returns ``None`` when no opcode name is a prefix of *mnemonic*.
    """
    upper = mnemonic.upper()
    for name in _NAMES_BY_LENGTH:
        if upper.startswith(name):
            return Opcode[name], upper[len(name):]
    return None
