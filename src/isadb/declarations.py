"""
Tables of names that instruction metadata and operands can refer to.

The tables are declared once per instruction set and can be extended later,
but a declaration can never change the meaning of a name that was declared
earlier.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from .arch import Arch
from .errors import DeclarationConflict, DeclarationError
from .input import InputLocation
from .utils import expand_name_range

type AttributeValue = bool | str | tuple[str, ...]


class AttributeKind(Enum):
    FLAG = "flag"
    STRING = "string"
    STRING_LIST = "string-list"

    @classmethod
    def parse(cls, name: str) -> AttributeKind:
        """
        Look up an attribute kind by name.
        The name "string[]" is accepted as an alternative spelling of a string list.
        Raise ValueError if there is no kind with the given name.
        """
        return cls.STRING_LIST if name == "string[]" else cls(name)

    def coerce(self, value: str) -> AttributeValue:
        """Convert a value from instruction metadata to this kind."""
        match self:
            case AttributeKind.FLAG:
                return value.upper() == "TRUE"
            case AttributeKind.STRING:
                return value
            case AttributeKind.STRING_LIST:
                return tuple(value.split("|"))


@dataclass(frozen=True, slots=True)
class CpuLevelDef:
    name: str


@dataclass(frozen=True, slots=True)
class ExtensionDef:
    name: str
    parent: str = ""
    """The extension that this extension builds upon, if any."""


@dataclass(frozen=True, slots=True)
class AttributeDef:
    name: str
    kind: AttributeKind
    doc: str = ""


@dataclass(frozen=True, slots=True)
class SpecialRegisterDef:
    name: str
    group: str
    doc: str = ""


@dataclass(frozen=True, slots=True)
class ShortcutDef:
    name: str
    expand: str
    doc: str = ""


@dataclass(frozen=True, slots=True)
class RegisterDef:
    """A register name that can be used as an operand."""

    name: str
    reg_type: str
    """The register class, such as "r32" or "xmm"."""
    kind: str
    """The register file, such as "gp" or "vec"."""
    index: int
    """Encoding index of the register, or -1 for a name that stands for
    any register of its class."""


def _table_items(
    data: Mapping[str, Any], key: str, location: InputLocation
) -> Iterator[Mapping[str, Any]]:
    items = data.get(key, ())
    if not isinstance(items, Sequence) or isinstance(items, str):
        raise DeclarationError(f'table "{key}" must be a list', location)
    for item in items:
        if not isinstance(item, Mapping) or not isinstance(item.get("name"), str):
            raise DeclarationError(
                f'entries in table "{key}" must be objects with a "name"', location
            )
        yield item


class Declarations:
    """The declaration tables of one instruction set."""

    def __init__(self, arch: Arch | None = None):
        self.arch = arch
        self._word_sizes: tuple[int, ...] = ()
        self._cpu_levels: dict[str, CpuLevelDef] = {}
        self._extensions: dict[str, ExtensionDef] = {}
        self._attributes: dict[str, AttributeDef] = {}
        self._special_regs: dict[str, SpecialRegisterDef] = {}
        self._shortcuts: dict[str, ShortcutDef] = {}
        self._registers: dict[str, RegisterDef] = {}

    @property
    def word_sizes(self) -> tuple[int, ...]:
        """
        The sizes in bits that an instruction word can have.
        Empty for architectures that do not use fixed-size instruction words.
        """
        if self._word_sizes:
            return self._word_sizes
        arch = self.arch
        return () if arch is None else arch.default_word_sizes

    @property
    def cpu_levels(self) -> Mapping[str, CpuLevelDef]:
        return MappingProxyType(self._cpu_levels)

    @property
    def extensions(self) -> Mapping[str, ExtensionDef]:
        return MappingProxyType(self._extensions)

    @property
    def attributes(self) -> Mapping[str, AttributeDef]:
        return MappingProxyType(self._attributes)

    @property
    def special_regs(self) -> Mapping[str, SpecialRegisterDef]:
        return MappingProxyType(self._special_regs)

    @property
    def shortcuts(self) -> Mapping[str, ShortcutDef]:
        return MappingProxyType(self._shortcuts)

    @property
    def registers(self) -> Mapping[str, RegisterDef]:
        return MappingProxyType(self._registers)

    def copy(self) -> Declarations:
        clone = Declarations(self.arch)
        clone._word_sizes = self._word_sizes
        clone._cpu_levels = dict(self._cpu_levels)
        clone._extensions = dict(self._extensions)
        clone._attributes = dict(self._attributes)
        clone._special_regs = dict(self._special_regs)
        clone._shortcuts = dict(self._shortcuts)
        clone._registers = dict(self._registers)
        return clone

    def merge(self, data: Mapping[str, Any], path: str = "<data>") -> None:
        """
        Add the declarations from a mapping in instruction table format.

        Either all declarations are added or, if any of them is malformed or
        conflicts with an earlier declaration, none are: `DeclarationError` or
        `DeclarationConflict` is raised and this object is left unmodified.
        """
        staged = self.copy()
        staged._merge(data, path)
        self.__dict__.update(staged.__dict__)

    def _merge(self, data: Mapping[str, Any], path: str) -> None:
        def location(name: str) -> InputLocation:
            return InputLocation.from_field(name, path, -1)

        arch_name = data.get("architecture")
        if arch_name is not None:
            try:
                arch = Arch(arch_name)
            except ValueError:
                raise DeclarationError(
                    f'unknown architecture "{arch_name}"', location(str(arch_name))
                ) from None
            if self.arch is None:
                self.arch = arch
            elif self.arch is not arch:
                raise DeclarationConflict(
                    f'architecture "{arch.value}" conflicts with earlier '
                    f'declared architecture "{self.arch.value}"',
                    location(arch.value),
                )

        word_sizes = data.get("word_sizes")
        if word_sizes is not None:
            if not isinstance(word_sizes, Sequence) or not all(
                isinstance(size, int) and size > 0 for size in word_sizes
            ):
                raise DeclarationError(
                    "word sizes must be a list of positive numbers",
                    location(str(word_sizes)),
                )
            sizes = tuple(word_sizes)
            if self._word_sizes and self._word_sizes != sizes:
                raise DeclarationConflict(
                    f"word sizes {sizes} conflict with earlier declared "
                    f"word sizes {self._word_sizes}",
                    location(str(word_sizes)),
                )
            self._word_sizes = sizes

        for item in _table_items(data, "cpu_levels", location("cpu_levels")):
            name = item["name"]
            self._cpu_levels[name] = CpuLevelDef(name)

        for item in _table_items(data, "extensions", location("extensions")):
            name = item["name"]
            ext = ExtensionDef(name, item.get("from", ""))
            if name in self._attributes:
                raise DeclarationConflict(
                    f'extension "{name}" was earlier declared as an attribute',
                    location(name),
                )
            old_ext = self._extensions.get(name)
            if old_ext is not None and old_ext.parent != ext.parent:
                raise DeclarationConflict(
                    f'extension "{name}" was earlier declared to build upon '
                    f'"{old_ext.parent}" instead of "{ext.parent}"',
                    location(name),
                )
            self._extensions[name] = ext

        for item in _table_items(data, "attributes", location("attributes")):
            name = item["name"]
            type_name = item.get("type", "")
            try:
                kind = AttributeKind.parse(type_name)
            except ValueError:
                raise DeclarationError(
                    f'attribute "{name}" has unknown type "{type_name}"',
                    location(name),
                ) from None
            if name in self._extensions:
                raise DeclarationConflict(
                    f'attribute "{name}" was earlier declared as an extension',
                    location(name),
                )
            old_attr = self._attributes.get(name)
            if old_attr is not None and old_attr.kind is not kind:
                raise DeclarationConflict(
                    f'attribute "{name}" was earlier declared with type '
                    f'"{old_attr.kind.value}" instead of "{kind.value}"',
                    location(name),
                )
            self._attributes[name] = AttributeDef(name, kind, item.get("doc", ""))

        for item in _table_items(data, "special_regs", location("special_regs")):
            name = item["name"]
            self._special_regs[name] = SpecialRegisterDef(
                name, item.get("group") or name, item.get("doc", "")
            )

        for item in _table_items(data, "shortcuts", location("shortcuts")):
            name = item["name"]
            expand = item.get("expand")
            if not isinstance(expand, str) or not expand:
                raise DeclarationError(
                    f'shortcut "{name}" must have an expansion', location(name)
                )
            old_shortcut = self._shortcuts.get(name)
            if old_shortcut is not None and old_shortcut.expand != expand:
                raise DeclarationConflict(
                    f'shortcut "{name}" was earlier declared to expand to '
                    f'"{old_shortcut.expand}" instead of "{expand}"',
                    location(name),
                )
            self._shortcuts[name] = ShortcutDef(name, expand, item.get("doc", ""))

        registers = data.get("registers", {})
        if not isinstance(registers, Mapping):
            raise DeclarationError(
                'table "registers" must map register classes to their registers',
                location("registers"),
            )
        for reg_type, reg_class in registers.items():
            for reg in _iter_register_class(reg_type, reg_class, location(reg_type)):
                old_reg = self._registers.get(reg.name)
                if old_reg is not None and old_reg.reg_type != reg.reg_type:
                    raise DeclarationConflict(
                        f'register "{reg.name}" was earlier declared in class '
                        f'"{old_reg.reg_type}" instead of "{reg.reg_type}"',
                        location(reg.name),
                    )
                self._registers[reg.name] = reg


def _iter_register_class(
    reg_type: str, reg_class: Any, location: InputLocation
) -> Iterable[RegisterDef]:
    if not isinstance(reg_class, Mapping):
        raise DeclarationError(
            f'register class "{reg_type}" must be an object', location
        )
    kind = reg_class.get("kind", "")
    any_name = reg_class.get("any")
    if any_name:
        yield RegisterDef(any_name, reg_type, kind, -1)
    for index, name in enumerate(reg_class.get("names", ())):
        expanded = list(expand_name_range(name))
        if len(expanded) == 1:
            yield RegisterDef(name, reg_type, kind, index)
        else:
            for reg_name in expanded:
                # Ranges are numbered by the number in their name.
                num = int("".join(filter(str.isdigit, reg_name)))
                yield RegisterDef(reg_name, reg_type, kind, num)
