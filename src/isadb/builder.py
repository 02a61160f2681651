from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import NamedTuple, Self

from .arch import Arch
from .arm import ARM_GRAMMAR
from .declarations import Declarations
from .errors import DeclarationError, ProblemKind
from .grammar import Grammar
from .input import InputLocation
from .instruction import Instruction
from .metadata import DEFAULT_VALUE, assign_attribute, assign_metadata
from .text import split_top_level
from .x86 import X86_GRAMMAR

GRAMMARS: Mapping[Arch, Grammar] = MappingProxyType(
    {Arch.X86: X86_GRAMMAR, Arch.ARM: ARM_GRAMMAR}
)

_NAME_SEP_RE = re.compile(r"/")


class Row(NamedTuple):
    """One row of an instruction table."""

    name: str
    operands: str
    encoding: str
    opcode: str
    metadata: str

    @classmethod
    def from_sequence(
        cls, fields: Sequence[object], path: str = "<row>", lineno: int = -1
    ) -> Self:
        """
        Create a row from a sequence of five strings.
        Raise `DeclarationError` if the sequence has a different shape.
        """
        if (
            isinstance(fields, str)
            or len(fields) != 5
            or not all(isinstance(item, str) for item in fields)
        ):
            raise DeclarationError(
                f"instruction row must consist of 5 strings, got: {fields!r}",
                InputLocation.from_field(str(fields), path, lineno),
            )
        return cls(*fields)  # type: ignore[arg-type]


def assign_operands(
    instr: Instruction,
    location: InputLocation,
    declarations: Declarations,
    grammar: Grammar,
) -> None:
    """
    Parse the operand list of a row into the operands of an instruction.

    Broadcast support and vector index registers of the operands are
    recorded on the instruction itself.
    """
    location, flags = grammar.extract_operand_flags(location)
    for flag in flags:
        assign_attribute(
            instr,
            flag.text,
            DEFAULT_VALUE,
            flag,
            declarations,
            grammar.assign_attribute,
        )

    operands = []
    for index, op_location in enumerate(split_top_level(location)):
        operand = grammar.parse_operand(
            op_location, grammar.default_access(index), declarations
        )
        if operand.broadcast:
            assign_attribute(
                instr,
                "broadcast",
                str(operand.broadcast),
                op_location,
                declarations,
                grammar.assign_attribute,
            )
        if operand.vsib is not None:
            if instr.vsib is None:
                instr.vsib = (operand.vsib.reg, operand.vsib.size)
            else:
                instr.report(
                    ProblemKind.MULTIPLE_VECTOR_ADDRESS_MODES,
                    "only one operand can be a vector memory address",
                    op_location,
                )
        operands.append(operand)
    instr.operands = tuple(operands)


def build_instructions(
    row: Row, declarations: Declarations, *, path: str = "<row>", lineno: int = -1
) -> list[Instruction]:
    """
    Build the instructions defined by one table row.

    A row can define several names for the same instruction, separated by
    slashes; every name after the first becomes an alias of the first.

    Raise `BadInput` if the row cannot be parsed.
    """
    arch = declarations.arch
    if arch is None:
        raise DeclarationError(
            "no architecture declared", InputLocation.from_field(row.name, path, lineno)
        )
    grammar = GRAMMARS[arch]

    def field(text: str) -> InputLocation:
        return InputLocation.from_field(text, path, lineno)

    names = [name.strip() for name in field(row.name).split(_NAME_SEP_RE)]
    for name in names:
        if not name.text:
            raise DeclarationError.with_text(
                "missing instruction name", field(row.name)
            )

    primary = Instruction(name=names[0].text, arch=arch, location=names[0])
    assign_operands(primary, field(row.operands), declarations, grammar)
    grammar.assign_encoding(primary, field(row.encoding))
    grammar.assign_opcode(primary, field(row.opcode), declarations)
    assign_metadata(
        primary, field(row.metadata), declarations, grammar.assign_attribute
    )
    grammar.check_immediates(primary)

    return [primary] + [
        primary.renamed(alias.text, primary.name) for alias in names[1:]
    ]
