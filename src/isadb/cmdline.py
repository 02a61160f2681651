from __future__ import annotations

import sys
from collections.abc import Iterable
from importlib.resources.abc import Traversable
from logging import INFO, Logger, StreamHandler, getLogger
from pathlib import Path
from typing import NoReturn

from click import argument, command, get_current_context, option, version_option

from .arch import Arch
from .input import LocationFormatter
from .isa import ISA
from .tables import builtin_isa_path, builtin_isas, load_isa
from .x86.checks import check_vex_evex, signature


def setup_logging(root_level: int) -> Logger:
    handler = StreamHandler()
    formatter = LocationFormatter()
    handler.setFormatter(formatter)
    logger = getLogger()
    logger.addHandler(handler)
    logger.setLevel(root_level)
    return logger


def dump_instructions(isa: ISA) -> None:
    for instr in isa.instructions:
        if isa.arch is Arch.X86 and not instr.is_alias:
            summary = signature(instr)
        else:
            summary = str(instr)
        line = f"{instr.name:<16} {summary}"
        if instr.is_alias:
            line += f"  (alias of {instr.alias_of})"
        elif instr.invalid_count:
            line += f"  [{instr.invalid_count:d} problem(s)]"
        print(line)


def _find_tables(names: Iterable[str]) -> tuple[list[Traversable], bool]:
    files: list[Traversable] = []
    errors = False
    for name in names:
        path = Path(name)
        if path.is_dir():
            files_in_dir = sorted(path.glob("**/*.json"))
            if files_in_dir:
                files += files_in_dir
            else:
                print(
                    "No instruction tables (*.json) in directory:",
                    path,
                    file=sys.stderr,
                )
        elif path.is_file():
            files.append(path)
        elif "/" not in name and "\\" not in name and "." not in name:
            if name in builtin_isas:
                files.append(builtin_isa_path(name))
            else:
                print("No built-in instruction set named:", name, file=sys.stderr)
                errors = True
        else:
            print("Instruction table not found:", name, file=sys.stderr)
            errors = True
    return files, errors


@command()
@option("--dump", is_flag=True, help="Print a summary of every instruction.")
@option(
    "--check-vex-evex",
    "check_vex_evex_",
    is_flag=True,
    help="Report VEX and EVEX forms of an instruction that disagree on W or L.",
)
@option(
    "--strict",
    is_flag=True,
    help="Fail if any instruction has problems, instead of only reporting them.",
)
@version_option(package_name="isadb")
@argument("instr", nargs=-1, type=str)
def checkisa(
    instr: Iterable[str], dump: bool, check_vex_evex_: bool, strict: bool
) -> NoReturn:
    """
    Check instruction tables.

    INSTR can be one or more JSON files, directories or built-in instruction
    set names.
    """

    files, errors = _find_tables(instr)
    if files:
        logger = setup_logging(INFO)
        for table in files:
            logger.info("checking: %s", table)
            isa = load_isa(table, logger)
            if isa is None:
                errors = True
                continue
            logger.info(
                "%s: %d instructions in %d groups",
                table,
                isa.stats.instructions,
                isa.stats.groups,
            )
            flagged = sum(1 for each in isa.instructions if each.invalid_count)
            if flagged:
                logger.warning("%s: %d instructions have problems", table, flagged)
                if strict:
                    errors = True
            if dump:
                dump_instructions(isa)
                print()
            if check_vex_evex_:
                for vex, evex in check_vex_evex(isa.iter_groups()):
                    logger.warning(
                        "%s: VEX and EVEX forms disagree:\n  %s\n  %s",
                        vex.name,
                        signature(vex),
                        signature(evex),
                    )
                    if strict:
                        errors = True
    else:
        print("No tables to check", file=sys.stderr)
    get_current_context().exit(1 if errors else 0)
