# nwscript_blocks/errors.py
"""
Error types for the NWScript block-graph toolkit.

Error Hierarchy:
────────────────
    NWScriptError (base)
    ├── ListingSyntaxError    - A text listing could not be read
    ├── MalformedScriptError  - Decoded instructions violate the input contract
    ├── BlockContractError    - Construction aborted on a contract violation
    └── GraphInvariantError   - A finished graph failed its invariant check

Error Codes:
────────────
Each error carries a code of the form NWS-NNNN:
  - 1000-1999: Listing syntax errors
  - 2000-2999: Malformed script errors (caller-side validation)
  - 3000-3999: Block construction contract violations
  - 9000-9999: Internal errors

``BlockContractError`` also derives from ``AssertionError``: it marks a bug
in whoever produced the instruction list, not a recoverable condition.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import List, Optional


@unique
class ErrorPhase(Enum):
    """Stage of the pipeline where the error occurred."""

    LISTING = "listing"
    VALIDATION = "validation"
    CONSTRUCTION = "construction"
    INTERNAL = "internal"


class ErrorCode:
    """A structured ``NWS-NNNN`` error code."""

    __slots__ = ("number", "phase", "summary")

    def __init__(self, number: int, phase: ErrorPhase, summary: str) -> None:
        self.number = number
        self.phase = phase
        self.summary = summary

    @property
    def code(self) -> str:
        return f"NWS-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash(self.number)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    # ── Listing syntax (1000-1999) ─────────────────────────────────────────
    LISTING_SYNTAX = ErrorCode(1000, ErrorPhase.LISTING, "unparsable listing line")
    UNKNOWN_MNEMONIC = ErrorCode(1001, ErrorPhase.LISTING, "unknown mnemonic")
    MISSING_TARGET = ErrorCode(1002, ErrorPhase.LISTING, "branch without destination operand")

    # ── Malformed script (2000-2999) ───────────────────────────────────────
    UNSORTED_ADDRESSES = ErrorCode(2000, ErrorPhase.VALIDATION, "addresses not strictly ascending")
    UNKNOWN_DESTINATION = ErrorCode(2001, ErrorPhase.VALIDATION, "branch destination not in script")
    BAD_REFERENCE = ErrorCode(2002, ErrorPhase.VALIDATION, "reference outside instruction list")
    BAD_FOLLOWER = ErrorCode(2003, ErrorPhase.VALIDATION, "follower is not the next instruction")
    ARITY_MISMATCH = ErrorCode(2004, ErrorPhase.VALIDATION, "branch count does not match opcode")
    MISSING_FOLLOWER = ErrorCode(2005, ErrorPhase.VALIDATION, "call without a following instruction")

    # ── Construction contract (3000-3999) ──────────────────────────────────
    BRANCH_ARITY = ErrorCode(3000, ErrorPhase.CONSTRUCTION, "branch arity violated")
    NOT_A_BRANCH = ErrorCode(3001, ErrorPhase.CONSTRUCTION, "non-branch opcode in branch dispatch")
    DUPLICATE_BLOCK = ErrorCode(3002, ErrorPhase.CONSTRUCTION, "second block at one address")
    BLOCK_REASSIGNED = ErrorCode(3003, ErrorPhase.CONSTRUCTION, "instruction assigned to two blocks")

    # ── Internal (9000-9999) ───────────────────────────────────────────────
    INVARIANT_BROKEN = ErrorCode(9000, ErrorPhase.INTERNAL, "graph invariant broken")


class NWScriptError(Exception):
    """Base exception for all errors raised by this package."""

    default_code: ErrorCode = ErrorCodes.INVARIANT_BROKEN

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        address: Optional[int] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.address = address
        self.hint = hint

    def with_hint(self, hint: str) -> "NWScriptError":
        self.hint = hint
        return self

    def format(self) -> str:
        """Return a one- or two-line human-readable rendering."""
        where = f" at 0x{self.address:08X}" if self.address is not None else ""
        text = f"{self.code}{where}: {self.message}"
        if self.hint:
            text += f"\n  hint: {self.hint}"
        return text

    def __str__(self) -> str:
        return self.format()


class ListingSyntaxError(NWScriptError):
    """A line of a text listing could not be read."""

    default_code = ErrorCodes.LISTING_SYNTAX

    def __init__(
        self,
        message: str,
        line: int,
        code: Optional[ErrorCode] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message, code=code, hint=hint)
        self.line = line

    def format(self) -> str:
        text = f"{self.code} on line {self.line}: {self.message}"
        if self.hint:
            text += f"\n  hint: {self.hint}"
        return text


class MalformedScriptError(NWScriptError):
    """The decoded instruction list does not satisfy the builder's input contract."""

    default_code = ErrorCodes.ARITY_MISMATCH


class BlockContractError(NWScriptError, AssertionError):
    """Block construction hit a contract violation and was aborted."""

    default_code = ErrorCodes.BRANCH_ARITY


class GraphInvariantError(NWScriptError):
    """A constructed graph failed :meth:`BlockGraph.check_invariants`."""

    default_code = ErrorCodes.INVARIANT_BROKEN

    def __init__(self, problems: List[str]) -> None:
        super().__init__(
            f"{len(problems)} invariant violation(s): " + "; ".join(problems)
        )
        self.problems = list(problems)
