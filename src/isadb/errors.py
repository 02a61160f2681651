"""
Problems found while ingesting an instruction table.

Hard errors are exceptions: the row that caused them is not added to the
instruction set. Soft problems are recorded on the instruction, which is
added anyway but should be verified before it is relied upon.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import override

from .input import BadInput, InputLocation


class MalformedOperandList(BadInput):
    """An operand list contains an empty operand."""


class UnrecognizedOperand(BadInput):
    """An operand does not have any of the known shapes."""


class UnrecognizedOpcodeToken(BadInput):
    """A part of an opcode string does not have any of the known shapes."""


class ConflictingFieldSpec(BadInput):
    """An opcode field was specified in contradicting ways."""


class InvalidOpcodeWidth(BadInput):
    """The opcode fields do not add up to the size of an instruction word."""


class DuplicateOpcodeByte(BadInput):
    """An opcode string contains more than one primary opcode byte."""


class MissingOpcodeByte(BadInput):
    """An opcode string does not contain a primary opcode byte."""


class InvalidSpecialRegisterAccess(BadInput):
    """A special register was given an access mode other than R, W, X, U, 0 or 1."""


class DeclarationError(BadInput):
    """A declaration table is malformed."""


class DeclarationConflict(DeclarationError):
    """A declaration contradicts an earlier declaration of the same name."""


class ProblemKind(Enum):
    IMMEDIATE_COUNT_MISMATCH = "ImmediateCountMismatch"
    UNHANDLED_ATTRIBUTE = "UnhandledAttribute"
    MULTIPLE_VECTOR_ADDRESS_MODES = "MultipleVectorAddressModes"
    INVALID_PRIVILEGE = "InvalidPrivilege"


@dataclass(frozen=True, slots=True)
class Problem:
    """A soft problem found in an instruction definition."""

    kind: ProblemKind
    message: str
    location: InputLocation | None = None

    @override
    def __str__(self) -> str:
        return self.message
