from __future__ import annotations

from ..grammar import Grammar
from .attributes import assign_attribute, assign_encoding, check_immediates
from .opcode import assign_opcode
from .operand import default_access, extract_flags, parse_operand

X86_GRAMMAR = Grammar(
    parse_operand=parse_operand,
    default_access=default_access,
    extract_operand_flags=extract_flags,
    assign_encoding=assign_encoding,
    assign_opcode=assign_opcode,
    assign_attribute=assign_attribute,
    check_immediates=check_immediates,
)
"""Rules for x86 instruction tables: byte-oriented opcodes and register-file
based operands."""
