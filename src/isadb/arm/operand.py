from __future__ import annotations

import re

from ..declarations import Declarations
from ..errors import UnrecognizedOperand
from ..input import InputLocation
from ..operand import Access, Operand, OperandKind, strip_decoration
from .fields import FIELD_INFO

_SHIFT_RE = re.compile(r"(?P<shift>SOP|LSL|LSR|ASR|ROR|RRX) ")
_RESTRICTION_RE = re.compile(r"==|!=|>=|<=|\*")


def default_access(index: int) -> None:
    """ARM register fields carry their own access; others have none."""
    return None


def _split_restriction(location: InputLocation) -> tuple[str, str]:
    match = location.search(_RESTRICTION_RE)
    if match is None:
        return location.text.strip(), ""
    split = match.group(0).span[0]
    text = location.text
    offset = split - location.span[0]
    return text[:offset].strip(), text[offset:].strip()


def parse_operand(
    location: InputLocation, default: Access | None, declarations: Declarations
) -> Operand:
    """
    Parse an ARM operand definition, such as "Rd", "{#imm}", "LSL #n" or
    "[Rn, #off]!".

    Register operands named after a standard opcode field get the access
    that belongs to that field, unless an access prefix says otherwise.
    Registers that are declared in the instruction set get the default access.

    Raise `UnrecognizedOperand` if the definition is not understood.
    """
    body, decoration = strip_decoration(location, commutative=False, broadcast=False)

    definition = body.text
    shift = ""
    shift_match = body.match(_SHIFT_RE)
    if shift_match is not None:
        shift = shift_match.group("shift").text
        body = body.update_span((shift_match.group(0).span[1], body.span[1])).strip()

    text = body.text
    if text.startswith("["):
        mem = text
        writeback = False
        if mem.endswith("{!}"):
            mem = mem[:-3]
            writeback = True
        elif mem.endswith("!"):
            mem = mem[:-1]
            writeback = True
        if not mem.endswith("]"):
            raise UnrecognizedOperand.with_text("unterminated memory operand", body)
        operand = Operand(
            kind=OperandKind.MEMORY,
            text=definition,
            mem=mem,
            writeback=writeback,
            shift=shift,
        )
        return decoration.apply(operand, None)

    if text.startswith("#"):
        name, restriction = _split_restriction(body)
        operand = Operand(
            kind=OperandKind.IMMEDIATE,
            text=definition,
            imm=name[1:],
            restriction=restriction,
            shift=shift,
        )
        return decoration.apply(operand, None)

    name, restriction = _split_restriction(body)
    info = FIELD_INFO.get(name)
    if info is not None:
        access = info.access
        operand = Operand(
            kind=OperandKind.REGISTER_LIST if info.is_list else OperandKind.REGISTER,
            text=definition,
            read=access is not None and access.read,
            write=access is not None and access.write,
            reg=name,
            reg_type=name[0].lower(),
            restriction=restriction,
            shift=shift,
        )
        return decoration.apply(operand, None)

    reg = declarations.registers.get(name)
    if reg is not None:
        operand = Operand(
            kind=OperandKind.REGISTER,
            text=definition,
            reg=name,
            reg_type=reg.reg_type,
            restriction=restriction,
            shift=shift,
        )
        return decoration.apply(operand, default)

    raise UnrecognizedOperand.with_text("unrecognized operand", body)
