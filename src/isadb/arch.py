from __future__ import annotations

from enum import Enum


class Arch(Enum):
    """Architecture family of an instruction set."""

    X86 = "x86"
    ARM = "arm"

    @property
    def default_word_sizes(self) -> tuple[int, ...]:
        """
        Instruction word sizes in bits, for architectures that encode
        instructions in fixed-width words, or an empty tuple otherwise.
        """
        match self:
            case Arch.ARM:
                return (16, 32)
            case Arch.X86:
                return ()


class ArchMode(Enum):
    """The processor modes in which an instruction is available."""

    ANY = "ANY"
    X86 = "X86"
    """32-bit x86 only."""
    X64 = "X64"
    """64-bit x86 only."""
    THUMB = "THUMB"
    A32 = "A32"
    A64 = "A64"
