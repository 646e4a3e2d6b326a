# tests/test_listing.py
"""Tests for the text listing reader."""

import pytest

from nwscript_blocks.errors import ErrorCodes, ListingSyntaxError, MalformedScriptError
from nwscript_blocks.listing import ListingLine, parse_line, parse_listing
from nwscript_blocks.opcodes import AddressType, Opcode
from tests.conftest import LOOP_LISTING, PROGRAM_LISTING


class TestParseLine:

    def test_minimal_line(self):
        assert parse_line("5 RETN") == ListingLine(5, "RETN", ())

    def test_colon_after_address(self):
        assert parse_line("0x10: NOP") == ListingLine(0x10, "NOP", ())

    def test_hex_and_decimal_operands(self):
        line = parse_line("0x02  CPTOPSP -4, 0x04")
        assert line.address == 2
        assert line.operands == (-4, 4)

    def test_blank_separated_operands(self):
        assert parse_line("1 ACTION 7 1").operands == (7, 1)

    def test_string_operand_with_escapes(self):
        line = parse_line(r'3 CONSTS "say \"hi\"\n"')
        assert line.operands == ('say "hi"\n',)

    def test_name_operand(self):
        assert parse_line("4 CONSTO object.self").operands == ("object.self",)

    def test_trailing_comment(self):
        line = parse_line("0x00  JSR  0x10   ; call helper")
        assert line == ListingLine(0, "JSR", (0x10,))

    def test_leading_zeros_are_decimal(self):
        assert parse_line("010 NOP").address == 10

    def test_garbage_reports_line(self):
        with pytest.raises(ListingSyntaxError) as info:
            parse_line("NOP 0x00", lineno=7)
        err = info.value
        assert err.line == 7
        assert err.code == ErrorCodes.LISTING_SYNTAX
        assert "column" in err.hint
        assert str(err).startswith("NWS-1000 on line 7:")


class TestParseListing:

    def test_loop_listing(self):
        instructions = parse_listing(LOOP_LISTING)
        assert [i.address for i in instructions] == [0, 1, 2]
        assert [i.opcode for i in instructions] == [Opcode.JZ, Opcode.JMP, Opcode.RETN]
        assert instructions[0].branches == [2, 1]
        assert instructions[1].branches == [0]
        assert instructions[2].branches == []

    def test_type_suffixes(self):
        instructions = parse_listing("""
            0 CONSTI 1
            1 CONSTF 2
            2 ADDII
            3 EQFF
            4 RETN
        """)
        assert [(i.opcode, i.type_tag) for i in instructions] == [
            (Opcode.CONST, "I"),
            (Opcode.CONST, "F"),
            (Opcode.ADD, "II"),
            (Opcode.EQ, "FF"),
            (Opcode.RETN, ""),
        ]

    def test_longest_opcode_name_wins(self):
        instructions = parse_listing("""
            0 STORESTATEALL 16
            1 RETN
        """)
        assert instructions[0].opcode is Opcode.STORESTATEALL
        assert instructions[0].branches == []
        assert instructions[0].arguments == (16,)

    def test_lowercase_mnemonic(self):
        assert parse_listing("0 retn")[0].opcode is Opcode.RETN

    def test_destination_split_from_arguments(self):
        instructions = parse_listing(PROGRAM_LISTING)
        storestate = instructions[6]
        assert storestate.opcode is Opcode.STORESTATE
        assert storestate.targets == (0x0C,)
        assert storestate.arguments == (16, 0)
        assert storestate.branches == [8]

    def test_address_types(self):
        instructions = parse_listing(PROGRAM_LISTING)
        by_address = {i.address: i.address_type for i in instructions}
        assert by_address[0x10] is AddressType.SUBROUTINE_START
        assert by_address[0x0C] is AddressType.SUBROUTINE_START
        assert by_address[0x02] is AddressType.JUMP_DESTINATION
        assert by_address[0x06] is AddressType.JUMP_DESTINATION
        assert by_address[0x13] is AddressType.JUMP_DESTINATION
        assert by_address[0x01] is AddressType.NONE

    def test_sorted_by_address(self):
        instructions = parse_listing("""
            2 RETN
            0 JMP 2
            1 NOP
        """)
        assert [i.address for i in instructions] == [0, 1, 2]
        assert instructions[0].branches == [2]

    def test_comment_and_blank_lines_skipped(self):
        text = "\n; header\n\n   ; indented\n0 RETN\n"
        assert len(parse_listing(text)) == 1

    def test_empty_listing(self):
        assert parse_listing("") == []


class TestListingErrors:

    def test_unknown_mnemonic(self):
        with pytest.raises(ListingSyntaxError) as info:
            parse_listing("0 NOP\n1 FROB 3\n")
        assert info.value.code == ErrorCodes.UNKNOWN_MNEMONIC
        assert info.value.line == 2

    def test_branch_without_destination(self):
        with pytest.raises(ListingSyntaxError) as info:
            parse_listing("0 JMP\n")
        assert info.value.code == ErrorCodes.MISSING_TARGET

    def test_branch_with_name_destination(self):
        with pytest.raises(ListingSyntaxError) as info:
            parse_listing("0 JMP loop\n1 RETN\n")
        assert info.value.code == ErrorCodes.MISSING_TARGET

    def test_destination_not_in_script(self):
        with pytest.raises(MalformedScriptError) as info:
            parse_listing("0 JMP 0x40\n1 RETN\n")
        assert info.value.code == ErrorCodes.UNKNOWN_DESTINATION
        assert info.value.address == 0

    def test_duplicate_address(self):
        with pytest.raises(MalformedScriptError) as info:
            parse_listing("0 NOP\n0 RETN\n")
        assert info.value.code == ErrorCodes.UNSORTED_ADDRESSES
