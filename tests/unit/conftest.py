from __future__ import annotations

from logging import getLogger
from resource import RLIMIT_AS, getrlimit, setrlimit
from typing import Any

import pytest

from isadb.input import ErrorCollector
from isadb.isa import ISA

MEM_LIMIT_GB = 1


def set_memory_limit(size: int) -> None:
    _soft, hard = getrlimit(RLIMIT_AS)
    setrlimit(RLIMIT_AS, (size, hard))


set_memory_limit(MEM_LIMIT_GB * 1024**3)


X86_DECLARATIONS: dict[str, Any] = {
    "architecture": "x86",
    "extensions": [
        {"name": "SSE2"},
        {"name": "AVX"},
        {"name": "AVX2", "from": "AVX"},
        {"name": "AVX512_F"},
        {"name": "AVX512_VL", "from": "AVX512_F"},
    ],
    "attributes": [
        {"name": "Lock", "type": "flag"},
        {"name": "Control", "type": "string"},
        {"name": "Tags", "type": "string[]"},
    ],
    "special_regs": [
        {"name": "FLAGS.CF", "group": "FLAGS"},
        {"name": "FLAGS.ZF", "group": "FLAGS"},
        {"name": "FLAGS.OF", "group": "FLAGS"},
    ],
    "shortcuts": [
        {"name": "_Flags", "expand": "FLAGS.CF|ZF|OF"},
    ],
    "cpu_levels": [{"name": "I486"}],
    "registers": {
        "r8": {"kind": "gp", "any": "r8", "names": ["al", "cl", "dl", "bl"]},
        "r32": {"kind": "gp", "any": "r32", "names": ["eax", "ecx", "edx", "ebx"]},
        "r64": {"kind": "gp", "any": "r64", "names": ["rax", "rcx", "rdx", "rbx"]},
        "mm": {"kind": "mm", "any": "mm", "names": ["mm0-7"]},
        "xmm": {"kind": "vec", "any": "xmm", "names": ["xmm0-15"]},
        "ymm": {"kind": "vec", "any": "ymm", "names": ["ymm0-15"]},
        "zmm": {"kind": "vec", "any": "zmm", "names": ["zmm0-31"]},
    },
}
"""Declarations that the x86 tests build upon."""

ARM_DECLARATIONS: dict[str, Any] = {
    "architecture": "arm",
    "word_sizes": [16, 32],
    "extensions": [{"name": "ARMv4"}, {"name": "ARMv6T2", "from": "ARMv4"}],
    "attributes": [{"name": "IT", "type": "string"}],
    "special_regs": [
        {"name": "APSR.N", "group": "APSR.NZCV"},
        {"name": "APSR.Z", "group": "APSR.NZCV"},
        {"name": "APSR.C", "group": "APSR.NZCV"},
        {"name": "APSR.V", "group": "APSR.NZCV"},
    ],
    "shortcuts": [{"name": "NZCV", "expand": "APSR.N|Z|C|V"}],
    "registers": {"r": {"kind": "gp", "names": ["SP", "LR", "PC"]}},
}
"""Declarations that the ARM tests build upon."""


@pytest.fixture
def collector() -> ErrorCollector:
    return ErrorCollector(getLogger("test"))


@pytest.fixture
def x86_isa(collector: ErrorCollector) -> ISA:
    isa = ISA(collector=collector)
    isa.add_data(X86_DECLARATIONS)
    return isa


@pytest.fixture
def arm_isa(collector: ErrorCollector) -> ISA:
    isa = ISA(collector=collector)
    isa.add_data(ARM_DECLARATIONS)
    return isa
