"""
listing.py — read NWScript assembly listings
=============================================

Turns a line-oriented text listing into linked :class:`Instruction`
objects, ready for :func:`~nwscript_blocks.block_builder.build_graph`.

Listing format::

    ; comments run to the end of the line
    0x00: JZ     0x03        ; taken destination first
    0x01  CONSTI 5
    0x02  JMP    0x04
    0x03  CONSTS "done"
    0x04  RETN

* Each line is ``address [:] mnemonic operand*``.
* Addresses and integer operands are decimal, or hexadecimal with ``0x``.
* A mnemonic is an opcode name optionally followed by its operand-type
  suffix (``ADDII``, ``EQFF``, ``CONSTS``).
* Operands are integers, double-quoted strings or bare names, separated
  by blanks and/or commas.
* For ``JMP``, ``JZ``, ``JNZ``, ``JSR`` and ``STORESTATE`` the first
  operand is the absolute destination address.

Depends on:
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import logging
from typing import Any, List, NamedTuple, Tuple

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import ErrorCodes, ListingSyntaxError
from .instruction import Instruction, link_instructions
from .opcodes import TARGET_OPCODES, opcode_from_mnemonic

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  GRAMMAR (Parsimonious PEG), one listing line at a time
# ═══════════════════════════════════════════════════════════════════

LISTING_GRAMMAR = Grammar(r'''
    line          = integer addr_sep mnemonic operands ws comment?

    addr_sep      = ~r"[ \t]*:[ \t]*" / ~r"[ \t]+"
    mnemonic      = ~r"[A-Za-z][A-Za-z0-9_]*"

    operands      = operand_item*
    operand_item  = sep operand
    sep           = ~r"[ \t]*,[ \t]*" / ~r"[ \t]+"
    operand       = integer / string / name

    integer       = ~r"-?0[xX][0-9a-fA-F]+" / ~r"-?[0-9]+"
    string        = ~r'"(?:[^"\\]|\\.)*"'
    name          = ~r"[A-Za-z_][A-Za-z0-9_.]*"

    ws            = ~r"[ \t]*"
    comment       = ~r";.*"
''')


class ListingLine(NamedTuple):
    address: int
    mnemonic: str
    operands: Tuple[Any, ...]


def _parse_int(text: str) -> int:
    if text.lstrip("-")[:2].lower() == "0x":
        return int(text, 16)
    return int(text, 10)


def _unescape(text: str) -> str:
    body = text[1:-1]
    out: List[str] = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append({"n": "\n", "t": "\t"}.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


# ═══════════════════════════════════════════════════════════════════
#  VISITOR (Parse Tree → ListingLine)
# ═══════════════════════════════════════════════════════════════════

class ListingLineBuilder(NodeVisitor):
    """Transforms the parse tree of one line into a :class:`ListingLine`."""

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_line(self, node, visited_children):
        address, _, mnemonic, operands, _, _ = visited_children
        return ListingLine(address, mnemonic, tuple(operands))

    def visit_mnemonic(self, node, visited_children):
        return node.text

    def visit_operands(self, node, visited_children):
        return list(visited_children)

    def visit_operand_item(self, node, visited_children):
        _, value = visited_children
        return value

    def visit_operand(self, node, visited_children):
        return visited_children[0]

    def visit_integer(self, node, visited_children):
        return _parse_int(node.text)

    def visit_string(self, node, visited_children):
        return _unescape(node.text)

    def visit_name(self, node, visited_children):
        return node.text


def parse_line(text: str, lineno: int = 1) -> ListingLine:
    """Parse a single non-blank, non-comment listing line."""
    try:
        tree = LISTING_GRAMMAR.parse(text)
    except ParseError as exc:
        raise ListingSyntaxError(
            f"cannot read {text!r}",
            line=lineno,
        ).with_hint(
            f"expected 'address mnemonic operands', stopped at column {exc.column()}"
        ) from exc
    return ListingLineBuilder().visit(tree)


# ═══════════════════════════════════════════════════════════════════
#  PUBLIC API
# ═══════════════════════════════════════════════════════════════════

def parse_listing(text: str) -> List[Instruction]:
    """Parse a whole listing and return its linked instructions.

    Raises
    ------
    ListingSyntaxError
        A line is malformed, names an unknown opcode, or a branch lacks
        its destination operand.
    MalformedScriptError
        A destination address does not belong to any instruction.
    """
    instructions: List[Instruction] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith(";"):
            continue

        parsed = parse_line(stripped, lineno)
        decoded = opcode_from_mnemonic(parsed.mnemonic)
        if decoded is None:
            raise ListingSyntaxError(
                f"unknown mnemonic {parsed.mnemonic!r}",
                line=lineno,
                code=ErrorCodes.UNKNOWN_MNEMONIC,
            )
        opcode, type_tag = decoded

        targets: Tuple[int, ...] = ()
        arguments = parsed.operands
        if opcode in TARGET_OPCODES:
            if not arguments or not isinstance(arguments[0], int):
                raise ListingSyntaxError(
                    f"{opcode.name} needs a destination address",
                    line=lineno,
                    code=ErrorCodes.MISSING_TARGET,
                )
            targets = (arguments[0],)
            arguments = arguments[1:]

        instructions.append(Instruction(
            parsed.address,
            opcode,
            type_tag=type_tag,
            arguments=arguments,
            targets=targets,
        ))

    logger.debug("Parsed %d instructions from listing", len(instructions))
    return link_instructions(instructions)
