from __future__ import annotations

from hypothesis import given
from hypothesis.strategies import from_regex, lists
from pytest import raises

from isadb.errors import MalformedOperandList
from isadb.input import InputLocation
from isadb.text import split_operands, split_top_level


def test_split_simple() -> None:
    assert split_operands("r32, r32/m32") == ["r32", "r32/m32"]


def test_split_blank() -> None:
    """An empty or blank operand list contains no operands."""
    assert split_operands("") == []
    assert split_operands("   ") == []


def test_split_nested_groups() -> None:
    """Commas inside brackets, braces and angle brackets do not split."""
    assert split_operands("xmm, {k}, [Rn, #4]!") == ["xmm", "{k}", "[Rn, #4]!"]
    assert split_operands("<ds:[zsi]>, R:{Rn, Rm}") == ["<ds:[zsi]>", "R:{Rn, Rm}"]
    assert split_operands("[Rn, {#imm, LSL #2}], Rd") == [
        "[Rn, {#imm, LSL #2}]",
        "Rd",
    ]


def test_split_less_equal() -> None:
    """A "<=" in a restriction does not open an angle bracket group."""
    assert split_operands("#imm<=31, Rd") == ["#imm<=31", "Rd"]


def test_split_unbalanced() -> None:
    """An unclosed group extends to the end of the list."""
    assert split_operands("Rd, [Rn, #4") == ["Rd", "[Rn, #4"]


def test_split_empty_operand() -> None:
    with raises(
        MalformedOperandList, match=r'^empty operand in operand list "r32, , ib"$'
    ):
        split_operands("r32, , ib")


def test_split_trailing_comma() -> None:
    with raises(MalformedOperandList):
        split_operands("r32, ib,")


def test_split_locations() -> None:
    """The operand locations point into the original field."""
    location = InputLocation.from_field("  al ,  ib ", "table.json", 4)
    al, ib = split_top_level(location)
    assert al.span == (2, 4)
    assert ib.span == (8, 10)
    assert ib.lineno == 4


_OPERAND_RE = r"[A-Za-z0-9:/#]+|\[[A-Za-z0-9, #]*\]"


@given(lists(from_regex(_OPERAND_RE, fullmatch=True), min_size=1))
def test_split_join_roundtrip(operands: list[str]) -> None:
    """Splitting a joined list returns the original operands."""
    assert split_operands(", ".join(operands)) == operands
