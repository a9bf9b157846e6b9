"""
discovery.py

Responsibility: Best-effort discovery of what a script depends on.

Discovery is a capability, not a requirement. `select_discoverer` checks once
whether the introspection backend (the `packaging` distribution) is
importable and hands back either the source-reading discoverer or a no-op
one. Nothing downstream cares which one it got.
"""

from __future__ import annotations

import dataclasses
import importlib.util
import logging
from pathlib import Path
from typing import Protocol

from scriptdist.config import Dependency, ScaffoldContext

logger = logging.getLogger(__name__)


class DependencyDiscoverer(Protocol):
    def get_modules(self, path: str | Path) -> list[Dependency]: ...

    def get_minimum_python(self, path: str | Path) -> str | None: ...


class NullDiscoverer:
    """Used when no introspection backend is installed."""

    def get_modules(self, path: str | Path) -> list[Dependency]:
        return []

    def get_minimum_python(self, path: str | Path) -> str | None:
        return None


def select_discoverer() -> DependencyDiscoverer:
    if importlib.util.find_spec("packaging") is None:
        logger.info("Install packaging to detect prerequisites and minimum versions")
        return NullDiscoverer()

    from scriptdist.introspect import SourceDiscoverer

    return SourceDiscoverer()


def discover(context: ScaffoldContext, discoverer: DependencyDiscoverer) -> ScaffoldContext:
    """
    Return a copy of `context` with `modules` and `minimum_python_version`
    filled in from the script. A script that does not exist yet keeps the
    defaults.
    """
    path = Path(context.script_path)
    if not path.is_file():
        return context

    try:
        modules = discoverer.get_modules(path)
        minimum = discoverer.get_minimum_python(path)
    except Exception as e:
        logger.info("Dependency discovery failed for %s, using defaults: %s", path, e)
        return context

    if modules:
        logger.info(
            "\tFound modules\n\t\t%s",
            "\n\t\t".join(f"{dep.module} => {dep.version or 0}" for dep in modules),
        )

    if minimum is not None:
        logger.info("\tFound minimum version %s", minimum)

    return dataclasses.replace(
        context,
        modules=tuple(modules),
        minimum_python_version=minimum or context.minimum_python_version,
    )
