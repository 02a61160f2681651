from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import combinations

from ..instruction import Instruction, InstructionGroup


def signature(instr: Instruction) -> str:
    """
    Return a summary of an x86 instruction form, such as
    "ANY VEX.256.W RVM:ymm,ymm,ymm/m".

    Implicit operands are shown in brackets and register-or-memory operands
    are shortened to "reg/m".
    """
    opcode = instr.opcode_symbolic
    parts = [instr.mode.value]
    if opcode is not None:
        if opcode.prefix:
            prefix = opcode.prefix
            if prefix != "3DNOW":
                prefix += f".{opcode.l}" if opcode.l in ("256", "512") else ".128"
                if opcode.w == "W1":
                    prefix += ".W"
            parts.append(prefix)
        elif opcode.w == "W1":
            parts.append("REX.W")
    operands = ",".join(
        f"[{operand.text}]" if operand.implicit else operand.to_reg_mem()
        for operand in instr.operands
    )
    encoding = f"{instr.encoding}:{operands}" if operands else instr.encoding
    parts.append(encoding)
    return " ".join(parts)


def check_vex_evex(
    groups: Iterable[tuple[str, InstructionGroup]],
) -> Iterator[tuple[Instruction, Instruction]]:
    """
    Find VEX and EVEX forms of the same instruction that disagree on their
    W or L fields.

    Forms are considered the same if they have the same operands and the
    same opcode byte. Yield (VEX form, EVEX form) pairs.
    """
    for _name, group in groups:
        for instr_a, instr_b in combinations(group, 2):
            opcode_a = instr_a.opcode_symbolic
            opcode_b = instr_b.opcode_symbolic
            if opcode_a is None or opcode_b is None:
                continue
            if [str(op) for op in instr_a.operands] != [
                str(op) for op in instr_b.operands
            ]:
                continue
            if opcode_a.prefix == "VEX" and opcode_b.prefix == "EVEX":
                vex, evex = instr_a, instr_b
            elif opcode_a.prefix == "EVEX" and opcode_b.prefix == "VEX":
                vex, evex = instr_b, instr_a
            else:
                continue
            vex_opcode = vex.opcode_symbolic
            evex_opcode = evex.opcode_symbolic
            assert vex_opcode is not None and evex_opcode is not None
            if vex_opcode.opcode != evex_opcode.opcode:
                continue
            if vex_opcode.w != evex_opcode.w or vex_opcode.l != evex_opcode.l:
                yield vex, evex
