"""
config.py

Responsibility: Resolve everything a single scaffolding run needs to know
into one immutable `ScaffoldContext`.

Inputs are deliberately few:
- the script path given on the command line
- the invoking program's name (it names the override directory and rc file)
- environment variables (HOME, SCRIPTDIST_DEBUG, PYPI_USER)
- an optional YAML rc file (~/.<tool_name>rc)
"""

from __future__ import annotations

import logging
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.10"
DEFAULT_MINIMUM_PYTHON = "3"
DIRECTORY_SUFFIX = ".d"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Dependency:
    """A module the script needs, with its lowest acceptable version (if known)."""

    module: str
    version: str | None = None

    @property
    def requirement(self) -> str:
        if self.version:
            return f"{self.module}>={self.version}"
        return self.module


@dataclass(frozen=True)
class ScaffoldContext:
    """Resolved configuration for one run. Built once at startup."""

    script_path: str
    script: str
    directory: str
    tool_name: str
    home: str
    rc_directory: str
    config_file: str
    dir_sep: str = "/"
    version: str = DEFAULT_VERSION
    minimum_python_version: str = DEFAULT_MINIMUM_PYTHON
    modules: tuple[Dependency, ...] = ()
    pypi_user: str = ""
    date: str = ""
    extras: dict[str, Any] = field(default_factory=dict)

    def _common(self) -> dict[str, Any]:
        values: dict[str, Any] = dict(self.extras)
        values.update(
            {
                "script": self.script,
                "directory": self.directory,
                "version": self.version,
                "minimum_python_version": self.minimum_python_version,
                "pypi_user": self.pypi_user,
                "date": self.date,
                "tool_name": self.tool_name,
                "home": self.home,
            }
        )
        return values

    def placeholders(self) -> dict[str, Any]:
        """
        Flat key/value view used for %%SCAFFOLD_<KEY>%% substitution.
        Keys are lower-case; `modules` is flattened to a comma-joined string.
        """
        values = self._common()
        values["modules"] = ", ".join(dep.requirement for dep in self.modules)
        return values

    def template_vars(self) -> dict[str, Any]:
        """Variables for the built-in Jinja2 templates."""
        values = self._common()
        values["modules"] = list(self.modules)
        return values


def env_flag(environ: Mapping[str, str], name: str) -> bool:
    """True when `name` is set to anything other than "" or "0"."""
    return environ.get(name, "") not in ("", "0")


def dir_separator(platform: str = sys.platform) -> str:
    if platform.startswith("win"):
        return "\\"
    if platform == "mac":
        # classic Mac OS
        return ":"
    return "/"


def load_rc_file(path: str | Path) -> dict[str, Any]:
    """
    Load the optional YAML rc file.

    Returns {} when the file is missing or empty. Keys are lower-cased so they
    line up with placeholder lookups.
    """
    p = Path(path)
    if not p.is_file():
        return {}
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse rc file {p}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"rc file {p} must be a mapping/object at the top level.")
    return {str(k).lower(): v for k, v in data.items()}


def resolve_context(
    script_path: str,
    *,
    tool_name: str,
    environ: Mapping[str, str] | None = None,
    platform: str = sys.platform,
) -> ScaffoldContext:
    env = os.environ if environ is None else environ

    home = env.get("HOME", "")
    logger.info("Home directory is %s", home)

    rc_directory = os.path.join(home, "." + tool_name)
    config_file = os.path.join(home, "." + tool_name + "rc")
    logger.info("RC directory is %s", rc_directory)

    if not home:
        logger.warning(
            "The environment variable HOME has no value, so I will look in\n"
            "the current directory for %s and %s. Set\n"
            "the HOME environment variable to choose another directory.",
            rc_directory,
            config_file,
        )

    rc = load_rc_file(config_file)

    script = os.path.basename(script_path)
    logger.info("Processing %s...", script)

    return ScaffoldContext(
        script_path=script_path,
        script=script,
        directory=script + DIRECTORY_SUFFIX,
        tool_name=tool_name,
        home=home,
        rc_directory=rc_directory,
        config_file=config_file,
        dir_sep=dir_separator(platform),
        version=str(rc.get("version") or DEFAULT_VERSION),
        pypi_user=str(env.get("PYPI_USER") or rc.get("pypi_user") or ""),
        date=time.asctime(),
        extras=rc,
    )
