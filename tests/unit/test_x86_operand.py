from __future__ import annotations

import pytest
from pytest import raises

from isadb.errors import UnrecognizedOperand
from isadb.input import InputLocation
from isadb.isa import ISA
from isadb.operand import Access, OperandKind, VectorIndex
from isadb.x86.operand import extract_flags


def test_implicit_register(x86_isa: ISA) -> None:
    """An implicit register operand keeps its name and the default access."""
    operand = x86_isa.parse_operand("<eax>", Access.READ)
    assert operand.kind is OperandKind.REGISTER
    assert operand.reg == "eax"
    assert operand.reg_type == "r32"
    assert operand.implicit
    assert operand.read
    assert not operand.write
    assert not operand.explicit_access


def test_partial_write(x86_isa: ISA) -> None:
    """An access prefix with a bit range marks a partial access."""
    operand = x86_isa.parse_operand("W[7:0]:xmm", Access.READ)
    assert operand.kind is OperandKind.REGISTER
    assert operand.write
    assert not operand.read
    assert operand.explicit_access
    assert operand.rw_subrange == (0, 8)
    assert operand.is_partial
    assert str(operand) == "W[7:0]:xmm"


def test_register_or_memory(x86_isa: ISA) -> None:
    operand = x86_isa.parse_operand("X:~r32/m32", Access.READ)
    assert operand.kind is OperandKind.REGISTER_OR_MEMORY
    assert operand.is_reg and operand.is_mem
    assert operand.reg == "r32"
    assert operand.mem == "m32"
    assert operand.mem_size == 32
    assert operand.access is Access.READ_WRITE
    assert operand.commutative
    assert operand.to_reg_mem() == "r32/m"
    assert str(operand) == "X:~r32/m32"


def test_memory_forms(x86_isa: ISA) -> None:
    assert x86_isa.parse_operand("m80fp").mem_size == 80
    assert x86_isa.parse_operand("mem").mem_size == 0
    offset = x86_isa.parse_operand("moff32")
    assert offset.mem_offset
    assert offset.mem_size == 32


def test_segment_prefix(x86_isa: ISA) -> None:
    operand = x86_isa.parse_operand("es:m8")
    assert operand.segment == "es"
    assert operand.mem == "m8"


def test_vector_index(x86_isa: ISA) -> None:
    operand = x86_isa.parse_operand("vm64y")
    assert operand.kind is OperandKind.MEMORY
    assert operand.vsib == VectorIndex("ymm", 64)
    assert operand.to_reg_mem() == "vm64y"


def test_broadcast(x86_isa: ISA) -> None:
    operand = x86_isa.parse_operand("zmm/m512/b32")
    assert operand.kind is OperandKind.REGISTER_OR_MEMORY
    assert operand.broadcast == 32
    assert operand.text == "zmm/m512"
    assert str(operand) == "zmm/m512/b32"


@pytest.mark.parametrize(
    "text, size", [("ib", 8), ("iw", 16), ("id", 32), ("iq", 64), ("i4", 4)]
)
def test_immediate_sizes(x86_isa: ISA, text: str, size: int) -> None:
    """Immediates are neither read nor written."""
    operand = x86_isa.parse_operand(text, Access.READ)
    assert operand.is_imm
    assert operand.imm_size == size
    assert operand.imm_value is None
    assert operand.access is None


def test_fixed_immediate(x86_isa: ISA) -> None:
    """The shift count "1" is an immediate with a fixed value."""
    operand = x86_isa.parse_operand("1")
    assert operand.is_imm
    assert operand.imm_value == 1
    assert operand.implicit
    assert str(operand) == "1"


def test_relative(x86_isa: ISA) -> None:
    operand = x86_isa.parse_operand("rel32")
    assert operand.kind is OperandKind.RELATIVE
    assert operand.rel_size == 32


def test_declared_register_name_wins(x86_isa: ISA) -> None:
    """Names in the register table take precedence over memory sizes."""
    x86_isa.add_data({"registers": {"tmm": {"kind": "amx", "names": ["m1"]}}})
    operand = x86_isa.parse_operand("m1")
    assert operand.kind is OperandKind.REGISTER
    assert operand.reg_type == "tmm"
    assert x86_isa.parse_operand("m16").kind is OperandKind.MEMORY


def test_unrecognized_operand(x86_isa: ISA) -> None:
    with raises(UnrecognizedOperand, match=r"^unrecognized operand: foo$"):
        x86_isa.parse_operand("r32/foo")


def test_incompatible_forms(x86_isa: ISA) -> None:
    with raises(UnrecognizedOperand, match=r"^cannot combine operand forms imm/reg"):
        x86_isa.parse_operand("ib/r32")


def test_extract_flags() -> None:
    """Flags are blanked out without moving the operands."""
    location = InputLocation.from_string("W:zmm {kz}, zmm, zmm/m512 {er}")
    stripped, flags = extract_flags(location)
    assert [flag.text for flag in flags] == ["kz", "er"]
    assert stripped.text == "W:zmm     , zmm, zmm/m512     "
    assert stripped.span == location.span


def test_roundtrip(x86_isa: ISA) -> None:
    """Formatting and parsing again preserves kinds and access."""
    for text in ("W:r32", "<al>", "R:~xmm/m128", "X:<ecx>", "ymm/m256/b64", "ib"):
        operand = x86_isa.parse_operand(text, Access.READ_WRITE)
        again = x86_isa.parse_operand(str(operand), Access.READ)
        assert again.kind is operand.kind
        assert again.implicit == operand.implicit
        if operand.explicit_access:
            assert again.access is operand.access
