from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .declarations import Declarations
from .input import InputLocation
from .instruction import Instruction
from .operand import Access, Operand

type OperandParser = Callable[[InputLocation, Access | None, Declarations], Operand]
type AttributeHandler = Callable[
    [Instruction, str, str, InputLocation, Declarations], bool
]


@dataclass(frozen=True)
class Grammar:
    """The rules for parsing the rows of one architecture family."""

    parse_operand: OperandParser
    """Parse one operand, given its default access."""

    default_access: Callable[[int], Access | None]
    """Return the default access of the operand at the given position."""

    extract_operand_flags: Callable[
        [InputLocation], tuple[InputLocation, list[InputLocation]]
    ]
    """
    Remove instruction-level flags from an operand list.
    Return the remaining operand list and the locations of the flag names.
    """

    assign_encoding: Callable[[Instruction, InputLocation], None]
    assign_opcode: Callable[[Instruction, InputLocation, Declarations], None]

    assign_attribute: AttributeHandler
    """
    Handle a metadata key that is not declared in the instruction set.
    Return True if the key was handled, False if it is unknown.
    """

    check_immediates: Callable[[Instruction], None]
    """Report immediate operands that have no place in the encoding."""
