from __future__ import annotations

from ..arch import ArchMode
from ..declarations import Declarations
from ..errors import ProblemKind
from ..grammar import Grammar
from ..input import InputLocation
from ..instruction import Instruction
from .opcode import assign_opcode
from .operand import default_access, parse_operand


def _no_flags(location: InputLocation) -> tuple[InputLocation, list[InputLocation]]:
    return location, []


def assign_encoding(instr: Instruction, location: InputLocation) -> None:
    """The encoding also tells the instruction set state: Thumb, A32 or A64."""
    encoding = location.text.strip()
    instr.encoding = encoding
    if encoding in ("T16", "T32"):
        instr.mode = ArchMode.THUMB
    elif encoding in ("A32", "A64"):
        instr.mode = ArchMode(encoding)


def assign_attribute(
    instr: Instruction,
    key: str,
    value: str,
    location: InputLocation,
    declarations: Declarations,
) -> bool:
    if key in ("THUMB", "A32", "A64"):
        instr.mode = ArchMode(key)
        return True
    return False


def check_immediates(instr: Instruction) -> None:
    """
    Check that every immediate operand has an opcode field with the same name,
    unless the operand is restricted to a single value.
    """
    for operand in instr.operands:
        if not operand.is_imm or operand.restriction.startswith("=="):
            continue
        if operand.imm not in instr.opcode_fields:
            instr.report(
                ProblemKind.IMMEDIATE_COUNT_MISMATCH,
                f'immediate "{operand.imm}" not found in opcode: '
                f"{instr.opcode_string}",
                instr.location,
            )


ARM_GRAMMAR = Grammar(
    parse_operand=parse_operand,
    default_access=default_access,
    extract_operand_flags=_no_flags,
    assign_encoding=assign_encoding,
    assign_opcode=assign_opcode,
    assign_attribute=assign_attribute,
    check_immediates=check_immediates,
)
"""Rules for ARM instruction tables: bit-field opcodes and addressing-mode
based operands."""
