from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from importlib.resources import files
from importlib.resources.abc import Traversable
from logging import WARNING, Logger, getLogger

from ..input import BadInput, DelayedError, ErrorCollector
from ..isa import ISA
from . import defs


def builtin_isa_path(name: str) -> Traversable:
    return files(defs) / f"{name}.json"


def load_isa(path: Traversable, logger: Logger | None = None) -> ISA | None:
    """
    Load an instruction set from a JSON instruction table.

    The best logging is achieved if `LocationFormatter` or another formatter
    that incorporates the `location` extra is used.

    Returns the instruction set, or None if it could not be loaded.
    """
    if logger is None:
        logger = getLogger(__name__)
    # Log only problems: a table with hundreds of clean rows should not
    # produce hundreds of lines of output.
    parser_logger = logger.getChild("parser")
    parser_logger.setLevel(WARNING)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as ex:
        logger.error("%s: Failed to read instruction table: %s", path, ex.strerror)
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as ex:
        logger.error(
            "%s:%d: Failed to parse instruction table: %s", path, ex.lineno, ex.msg
        )
        return None
    if not isinstance(data, Mapping):
        logger.error("%s: Instruction table must contain a JSON object", path)
        return None

    collector = ErrorCollector(parser_logger)
    isa = ISA(collector=collector)
    try:
        with collector.check():
            try:
                isa.add_data(data, collector, str(path))
            except BadInput as ex:
                collector.report(ex)
    except DelayedError:
        collector.summarize(str(path))
        return None
    collector.summarize(str(path))
    return isa


def load_isa_by_name(name: str, logger: Logger | None = None) -> ISA | None:
    """
    Load the named built-in instruction set.

    The best logging is achieved if `LocationFormatter` or another formatter
    that incorporates the `location` extra is used.

    Returns the instruction set, or None if it could not be loaded.
    """
    if logger is None:
        logger = getLogger(__name__)
    logger.info("Loading instruction set: %s", name)
    return load_isa(builtin_isa_path(name), logger)


class ISAProvider:
    """
    Abstract base class for providers that can look up instruction sets by name.
    """

    def __getitem__(self, name: str) -> ISA | None:
        """
        Return the instruction set with the given name, or `None` if it is not
        available for any reason.
        """
        raise NotImplementedError

    def __iter__(self) -> Iterator[str]:
        """Iterate through the names of the instruction sets that can be provided."""
        raise NotImplementedError


class ISADirectory(ISAProvider):
    """Instruction set provider that loads and caches tables from a directory."""

    def __init__(self, path: Traversable, logger: Logger | None = None):
        self._path = path
        self._logger = logger or getLogger(__name__)
        self._cache: dict[str, ISA | None] = {}

    def __getitem__(self, name: str) -> ISA | None:
        try:
            return self._cache[name]
        except KeyError:
            logger = self._logger
            logger.info("Loading instruction set: %s", name)
            isa = load_isa(self._path / f"{name}.json", logger)
            self._cache[name] = isa
            return isa

    def __iter__(self) -> Iterator[str]:
        for path in self._path.iterdir():
            if path.is_file():
                name = path.name
                if name.endswith(".json"):
                    yield name[:-5]


builtin_isas = ISADirectory(files(defs))
"""
Provider for the instruction sets that come with isadb.
"""
