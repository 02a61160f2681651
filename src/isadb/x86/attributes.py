from __future__ import annotations

import re

from ..arch import ArchMode
from ..declarations import Declarations
from ..errors import ProblemKind
from ..input import InputLocation
from ..instruction import Instruction

_VL_RE = re.compile(r"(AVX512\w+)-VL")
_PRIVILEGE_RE = re.compile(r"L[0-3]")
_IMM_TOKEN_RE = re.compile(r"(?:^|\s)(?:ib|iw|id|iq)(?!\S)")

DEFAULT_PRIVILEGE = "L3"


def assign_attribute(
    instr: Instruction,
    key: str,
    value: str,
    location: InputLocation,
    declarations: Declarations,
) -> bool:
    """Handle x86 metadata keys that have a fixed meaning."""

    if key in ("ANY", "X86", "X64"):
        instr.mode = ArchMode(key)
        return True

    # An AVX-512 extension with a "-VL" suffix requires two extensions.
    vl_match = _VL_RE.fullmatch(key)
    if vl_match is not None and vl_match[1] in declarations.extensions:
        instr.extensions.add(vl_match[1])
        instr.extensions.add("AVX512_VL")
        return True

    match key:
        case "FPU":
            instr.fpu = True
        case "kz":
            instr.zmask = True
            instr.kmask = True
        case "k":
            instr.kmask = True
        case "er":
            instr.rounding = True
            instr.sae = True
        case "sae":
            instr.sae = True
        case "PRIVILEGE":
            if _PRIVILEGE_RE.fullmatch(value) is None:
                instr.report(
                    ProblemKind.INVALID_PRIVILEGE,
                    f'invalid privilege level "{value}"',
                    location,
                )
            instr.privilege = value
        case "broadcast":
            try:
                element_size = int(value)
            except ValueError:
                return False
            instr.broadcast = True
            instr.element_size = element_size
        case "FPU_PUSH":
            instr.fpu = True
            instr.fpu_top = -1
        case "FPU_POP":
            try:
                pops = int(value)
            except ValueError:
                return False
            instr.fpu = True
            instr.fpu_top = pops
        case "FPU_TOP":
            match value:
                case "-1":
                    instr.fpu_top = -1
                case "+1":
                    instr.fpu_top = 1
                case _:
                    return False
            instr.fpu = True
        case _:
            return False
    return True


def assign_encoding(instr: Instruction, location: InputLocation) -> None:
    """Split the encoding into the operand encoding and the AVX-512 tuple type."""
    encoding, _, tuple_type = location.text.strip().partition("-")
    instr.encoding = encoding
    instr.tuple_type = tuple_type
    instr.privilege = DEFAULT_PRIVILEGE


def check_immediates(instr: Instruction) -> None:
    """
    Check that every encoded immediate operand has an "I" in the operand
    encoding and that the opcode has exactly one immediate placeholder per
    encoded immediate operand. Immediates that always have the same value are not encoded.
    """
    count = sum(
        1 for operand in instr.operands if operand.is_imm and operand.imm_value is None
    )
    if count and "I" * count not in instr.encoding:
        instr.report(
            ProblemKind.IMMEDIATE_COUNT_MISMATCH,
            f"{count:d} immediate(s) missing in encoding: {instr.encoding}",
            instr.location,
        )
    found = len(_IMM_TOKEN_RE.findall(instr.opcode_string))
    if found != count:
        instr.report(
            ProblemKind.IMMEDIATE_COUNT_MISMATCH,
            f"{count:d} immediate(s) expected in opcode, found {found:d}: "
            f"{instr.opcode_string}",
            instr.location,
        )
