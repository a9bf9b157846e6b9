"""
introspect.py

Responsibility: Read a Python script's source and report its third-party
requirements and its minimum Python version.

Two sources of truth are used, in this order:
- PEP 723 inline script metadata (`# /// script` ... `# ///`), which may
  declare `dependencies` and `requires-python`
- the script's own top-level imports, found with `ast`

Scripts that are not Python (or are not valid Python yet) simply yield
nothing. Only import this module after checking that `packaging` is
installed; `scriptdist.discovery.select_discoverer` does that.
"""

from __future__ import annotations

import ast
import importlib.metadata
import logging
import re
import sys
import tomllib
from pathlib import Path
from typing import Any, Iterable

from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from scriptdist.config import Dependency

logger = logging.getLogger(__name__)

# Reference regex from PEP 723.
_METADATA_RE = re.compile(r"(?m)^# /// (?P<type>[a-zA-Z0-9-]+)$\s(?P<content>(^#(| .*)$\s)+)^# ///$")

_PIN_OPERATORS = frozenset({">=", "~=", "==", "==="})


class MetadataError(ValueError):
    pass


def read_script_metadata(text: str) -> dict[str, Any] | None:
    """
    Return the parsed `script` metadata block, or None if there is none.
    """
    blocks = [m for m in _METADATA_RE.finditer(text) if m.group("type") == "script"]
    if not blocks:
        return None
    if len(blocks) > 1:
        raise MetadataError("Multiple `script` metadata blocks found")

    content = "".join(
        line[2:] if line.startswith("# ") else line[1:]
        for line in blocks[0].group("content").splitlines(keepends=True)
    )
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise MetadataError(f"Invalid script metadata: {e}") from e


def lowest_version(specifier: SpecifierSet, operators: Iterable[str] = _PIN_OPERATORS) -> str | None:
    """
    Lowest version pinned by any of `operators` in `specifier`, or None.
    Wildcard pins (`==3.*`) count as their prefix.
    """
    ops = set(operators)
    versions: list[Version] = []
    for spec in specifier:
        if spec.operator not in ops:
            continue
        try:
            versions.append(Version(spec.version.removesuffix(".*")))
        except InvalidVersion:
            continue
    if not versions:
        return None
    return str(min(versions))


def imported_modules(source: str) -> list[str]:
    """
    Top-level names of absolute imports, in source order, without duplicates.
    Raises SyntaxError for source that is not Python.
    """
    tree = ast.parse(source)
    nodes = [n for n in ast.walk(tree) if isinstance(n, (ast.Import, ast.ImportFrom))]
    nodes.sort(key=lambda n: (n.lineno, n.col_offset))

    names: list[str] = []
    for node in nodes:
        if isinstance(node, ast.Import):
            candidates = [alias.name for alias in node.names]
        elif node.level == 0 and node.module:
            candidates = [node.module]
        else:
            continue
        for name in candidates:
            top = name.split(".", 1)[0]
            if top not in names:
                names.append(top)
    return names


class SourceDiscoverer:
    """Dependency discovery backed by `packaging`, `tomllib` and `ast`."""

    def __init__(self, distributions: dict[str, list[str]] | None = None) -> None:
        self._distributions = distributions

    def _distribution_for(self, module: str) -> str:
        if self._distributions is None:
            self._distributions = dict(importlib.metadata.packages_distributions())
        dists = self._distributions.get(module) or []
        return dists[0] if dists else module

    def _read(self, path: str | Path) -> tuple[str, dict[str, Any]] | None:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.info("Could not read %s for introspection: %s", path, e)
            return None
        try:
            metadata = read_script_metadata(text) or {}
        except MetadataError as e:
            logger.info("Ignoring script metadata in %s: %s", path, e)
            metadata = {}
        return text, metadata

    def get_modules(self, path: str | Path) -> list[Dependency]:
        read = self._read(path)
        if read is None:
            return []
        text, metadata = read

        found: list[Dependency] = []
        seen: set[str] = set()

        declared = metadata.get("dependencies") or []
        if not isinstance(declared, list):
            logger.info("Ignoring non-list dependencies %r in %s", declared, path)
            declared = []

        for raw in declared:
            try:
                req = Requirement(str(raw))
            except InvalidRequirement as e:
                logger.info("Skipping unparseable dependency %r: %s", raw, e)
                continue
            name = canonicalize_name(req.name)
            if name in seen:
                continue
            seen.add(name)
            found.append(Dependency(req.name, lowest_version(req.specifier)))

        try:
            imports = imported_modules(text)
        except (SyntaxError, ValueError, RecursionError):
            logger.info("%s is not parseable Python source; not scanning imports", path)
            return found

        for module in imports:
            if module in sys.stdlib_module_names:
                continue
            dist = self._distribution_for(module)
            name = canonicalize_name(dist)
            if name in seen:
                continue
            seen.add(name)
            found.append(Dependency(dist))

        return found

    def get_minimum_python(self, path: str | Path) -> str | None:
        read = self._read(path)
        if read is None:
            return None
        _text, metadata = read

        requires = metadata.get("requires-python")
        if not requires:
            return None
        try:
            specifier = SpecifierSet(str(requires))
        except InvalidSpecifier as e:
            logger.info("Ignoring invalid requires-python %r: %s", requires, e)
            return None
        return lowest_version(specifier)
