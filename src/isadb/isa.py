from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .arch import Arch
from .builder import GRAMMARS, Row, build_instructions
from .declarations import Declarations
from .errors import DeclarationError
from .input import BadInput, ErrorCollector, InputLocation
from .instruction import Instruction, InstructionGroup
from .operand import Access, Operand


@dataclass(slots=True)
class Stats:
    instructions: int = 0
    """Number of instructions, aliases included."""

    groups: int = 0
    """Number of distinct instruction names."""


class ISA:
    """
    An instruction set: declaration tables plus the instructions defined
    by table rows, grouped by name.
    """

    def __init__(
        self, arch: Arch | str | None = None, collector: ErrorCollector | None = None
    ):
        self._declarations = Declarations(None if arch is None else Arch(arch))
        self._collector = ErrorCollector() if collector is None else collector
        self._groups: dict[str, InstructionGroup] = {}
        self._aliases: dict[str, str] = {}
        self._names: tuple[str, ...] | None = None
        self._instructions: list[Instruction] | None = None
        self.stats = Stats()

    @property
    def arch(self) -> Arch | None:
        return self._declarations.arch

    @property
    def declarations(self) -> Declarations:
        return self._declarations

    @property
    def aliases(self) -> Mapping[str, str]:
        """Maps alias names to the primary names of their instructions."""
        return MappingProxyType(self._aliases)

    @property
    def names(self) -> tuple[str, ...]:
        """The names of all instructions, in sorted order."""
        names = self._names
        if names is None:
            names = self._names = tuple(sorted(self._groups))
        return names

    @property
    def instructions(self) -> Sequence[Instruction]:
        """All instructions, ordered by name and then by order of definition."""
        instructions = self._instructions
        if instructions is None:
            groups = self._groups
            instructions = self._instructions = [
                instr for name in self.names for instr in groups[name]
            ]
        return instructions

    def __len__(self) -> int:
        return self.stats.instructions

    def __contains__(self, name: object) -> bool:
        return name in self._groups

    def iter_groups(self) -> Iterator[tuple[str, InstructionGroup]]:
        """Iterate through (name, group) pairs, in sorted name order."""
        groups = self._groups
        for name in self.names:
            yield name, groups[name]

    def query(
        self,
        name: str | Iterable[str] | None = None,
        *,
        copy: bool = False,
        predicate: Callable[[Instruction], bool] | None = None,
    ) -> InstructionGroup:
        """
        Look up instructions by name.

        If a single name is given, the group of instructions with that name
        is returned; this is the group owned by this instruction set unless
        `copy` is true. If several names are given, a new group with the
        instructions of all of those names is returned. If no name is given,
        all instructions are returned. Unknown names are ignored.

        If a predicate is given, only the instructions for which it returns true
        are included; the result is then always a new group.
        """
        groups = self._groups
        if name is None:
            result = InstructionGroup(self.instructions)
        elif isinstance(name, str):
            group = groups.get(name)
            if group is None:
                result = InstructionGroup()
            else:
                result = InstructionGroup(group) if copy else group
        else:
            result = InstructionGroup(
                instr for each in name for instr in groups.get(each, ())
            )
        if predicate is not None:
            result = InstructionGroup(instr for instr in result if predicate(instr))
        return result

    def parse_operand(
        self, token: str, default_access: Access | None = Access.READ
    ) -> Operand:
        """
        Parse a single operand definition using this instruction set's
        architecture and declared registers.
        """
        arch = self.arch
        if arch is None:
            raise DeclarationError("no architecture declared")
        grammar = GRAMMARS[arch]
        return grammar.parse_operand(
            InputLocation.from_string(token), default_access, self._declarations
        )

    def add_data(
        self,
        data: Mapping[str, Any],
        collector: ErrorCollector | None = None,
        path: str = "<data>",
    ) -> None:
        """
        Add declarations and instruction rows.

        All declarations are merged before any of the rows is parsed. If the
        declarations are malformed or conflict with earlier declarations,
        `DeclarationError` is raised and nothing is added.

        Without a collector, parsing stops at the first row that cannot be
        parsed and the error is raised; rows before it have been added.
        With a collector, rows that cannot be parsed are reported to the
        collector and skipped.
        """
        self._declarations.merge(data, path)

        rows = data.get("instructions", ())
        if isinstance(rows, str) or not isinstance(rows, Sequence):
            raise DeclarationError(
                'table "instructions" must be a list of rows',
                InputLocation.from_field("instructions", path, -1),
            )
        for lineno, fields in enumerate(rows, 1):
            try:
                row = Row.from_sequence(fields, path, lineno)
                self.add_row(row, path=path, lineno=lineno, collector=collector)
            except BadInput as ex:
                if collector is None:
                    raise
                collector.report(ex)

    def add_row(
        self,
        row: Sequence[str],
        *,
        path: str = "<row>",
        lineno: int = -1,
        collector: ErrorCollector | None = None,
    ) -> list[Instruction]:
        """
        Parse one table row and add the instructions it defines.

        Either all instructions of the row are added or, if the row cannot be
        parsed, none are and `BadInput` is raised. Problems that do not
        prevent the instructions from being added are logged as warnings.
        Return the added instructions.
        """
        if not isinstance(row, Row):
            row = Row.from_sequence(row, path, lineno)
        instructions = build_instructions(
            row, self._declarations, path=path, lineno=lineno
        )

        reporter = self._collector if collector is None else collector
        for instr in instructions:
            if instr.is_alias:
                continue
            for problem in instr.problems:
                reporter.warning(
                    f"{instr.name}: {problem.message}", location=problem.location
                )

        for instr in instructions:
            self._insert(instr)
        return instructions

    def _insert(self, instr: Instruction) -> None:
        name = instr.name
        group = self._groups.get(name)
        if group is None:
            group = self._groups[name] = InstructionGroup()
            self._names = None
            self.stats.groups += 1
        if instr.alias_of is not None:
            self._aliases[name] = instr.alias_of
        group.append(instr)
        self.stats.instructions += 1
        self._instructions = None
