from __future__ import annotations

from collections.abc import Set
from dataclasses import dataclass, field, replace
from typing import override

from .arch import Arch, ArchMode
from .declarations import AttributeValue
from .errors import Problem, ProblemKind
from .input import InputLocation
from .operand import Operand


@dataclass(frozen=True, slots=True)
class OpcodeField:
    """A named slice of a fixed-width instruction word."""

    width: int
    mask: int
    lsb: int
    """Position of the lowest bit of the field's first part in the word."""


@dataclass(frozen=True, slots=True)
class X86Opcode:
    """Symbolic decomposition of a byte-oriented opcode."""

    opcode: str
    """The primary opcode byte as two upper case hex digits."""

    prefix: str = ""
    """Encoding prefix family: "", "VEX", "EVEX", "XOP" or "3DNOW"."""

    l: str = ""
    """Vector length: "", "LIG", "128", "256" or "512"."""

    w: str = ""
    """W field: "", "WIG", "W0" or "W1"."""

    pp: str = ""
    """Mandatory prefix bytes, such as "66", "F3" or "66F2"."""

    mm: str = ""
    """Escape bytes or opcode map, such as "0F", "0F38" or "M8"."""

    vvvv: str = ""
    """Use of the VEX.vvvv operand: "", "NDS", "NDD" or "DDS"."""

    rm: str = ""
    """ModR/M payload: "" if absent, "r" for a register operand or "0" to "7"."""

    reg_in_opcode: bool = False
    """True iff a register or FPU stack index is added to the opcode byte."""

    imm_bits: int = 0
    disp_size: int = 0
    """Size of a relative displacement in bytes, or 0 if there is none."""

    addr_override: bool = False
    """True iff the instruction requires the 67h address size override."""

    @property
    def opcode_value(self) -> int:
        return int(self.opcode, 16)

    @property
    def rm_index(self) -> int | None:
        rm = self.rm
        return int(rm) if rm.isdigit() else None

    @property
    def w_value(self) -> int | None:
        match self.w:
            case "W0":
                return 0
            case "W1":
                return 1
            case _:
                return None

    @property
    def is_vex(self) -> bool:
        return self.prefix in ("VEX", "XOP")

    @property
    def is_evex(self) -> bool:
        return self.prefix == "EVEX"

    @property
    def is_avx(self) -> bool:
        return self.is_vex or self.is_evex


@dataclass(slots=True, kw_only=True, eq=False)
class Instruction:
    """
    One form of an instruction, as defined by a single row in an
    instruction table.

    Instructions are filled in while their row is parsed and should be
    treated as read-only once they are added to an instruction set.
    """

    name: str
    arch: Arch
    mode: ArchMode = ArchMode.ANY
    location: InputLocation | None = None
    """Location of the name field in the instruction table."""

    alias_of: str | None = None
    """The primary name, if this instruction was declared under several names
    and this is not the first of those."""

    encoding: str = ""
    tuple_type: str = ""
    operands: tuple[Operand, ...] = ()

    opcode_string: str = ""
    opcode_fields: dict[str, OpcodeField] = field(default_factory=dict)
    opcode_word: int = 0
    opcode_fixed_mask: int = 0
    """Bits of `opcode_word` that are fixed by literal parts of the opcode."""
    opcode_symbolic: X86Opcode | None = None

    extensions: set[str] = field(default_factory=set)
    attributes: dict[str, AttributeValue] = field(default_factory=dict)
    special_regs: dict[str, str] = field(default_factory=dict)
    operations: set[str] = field(default_factory=set)
    privilege: str = ""
    cpu_level: str = ""

    fpu: bool = False
    fpu_top: int = 0
    """Change of the FPU stack top: -1 for a push, a positive number for pops."""
    vsib: tuple[str, int] | None = None
    broadcast: bool = False
    element_size: int = 0
    kmask: bool = False
    zmask: bool = False
    sae: bool = False
    rounding: bool = False

    problems: list[Problem] = field(default_factory=list)

    @override
    def __str__(self) -> str:
        operands = ", ".join(str(operand) for operand in self.operands)
        return f"{self.name} {operands}" if operands else self.name

    @property
    def invalid_count(self) -> int:
        """
        Number of problems found in this instruction's definition.
        An instruction with a non-zero count should be verified before
        it is relied upon.
        """
        return len(self.problems)

    @property
    def is_alias(self) -> bool:
        return self.alias_of is not None

    @property
    def implicit_mask(self) -> int:
        """Bit mask with bit N set iff operand N is implicit."""
        return sum(1 << idx for idx, op in enumerate(self.operands) if op.implicit)

    @property
    def commutative_mask(self) -> int:
        """Bit mask with bit N set iff operand N is commutative."""
        return sum(
            1 << idx for idx, op in enumerate(self.operands) if op.commutative
        )

    def report(
        self, kind: ProblemKind, message: str, location: InputLocation | None = None
    ) -> None:
        """Record a problem that does not prevent the use of this instruction."""
        self.problems.append(Problem(kind, message, location))

    def has_attribute(self, name: str, value: AttributeValue | None = None) -> bool:
        """
        Return True iff this instruction has the given attribute and, if a value
        is given, the attribute has that value.
        """
        try:
            actual = self.attributes[name]
        except KeyError:
            return False
        return value is None or actual == value

    def operand_by_name(self, name: str) -> Operand | None:
        for operand in self.operands:
            if operand.name == name:
                return operand
        return None

    def renamed(self, name: str, alias_of: str) -> Instruction:
        """Return a copy of this instruction under an alias name."""
        return replace(
            self,
            name=name,
            alias_of=alias_of,
            opcode_fields=dict(self.opcode_fields),
            extensions=set(self.extensions),
            attributes=dict(self.attributes),
            special_regs=dict(self.special_regs),
            operations=set(self.operations),
            problems=list(self.problems),
        )


class InstructionGroup(list[Instruction]):
    """All instructions in an instruction set that share a name."""

    def check_attribute(self, name: str, value: AttributeValue | None = None) -> int:
        """Return the number of instructions that have the given attribute."""
        return sum(1 for instr in self if instr.has_attribute(name, value))

    def union_extensions(self) -> Set[str]:
        """Return the extensions required by any of the instructions."""
        result: set[str] = set()
        for instr in self:
            result |= instr.extensions
        return result
