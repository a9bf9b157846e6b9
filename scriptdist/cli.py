"""
cli.py

Responsibility: CLI entrypoint for scriptdist.

High-level flow (single positional argument, the script to package):
1) Resolve configuration -> `ScaffoldContext`
2) Discover the script's dependencies and minimum Python (best-effort)
3) Create `<script>.d/` and `<script>.d/t/` (refuses if it already exists)
4) Render overrides, built-in templates, and the script into it
5) Write MANIFEST, then git init + initial commit

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Dependency discovery: `discovery.py`
- Rendering: `renderer.py`
- Manifest / git: `finalize.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping

from scriptdist import __version__
from scriptdist.config import ConfigError, env_flag, resolve_context
from scriptdist.discovery import discover, select_discoverer
from scriptdist.finalize import GitError, gitify, write_manifest
from scriptdist.renderer import RenderError, render_distribution
from scriptdist.templates import build_builtin_templates

logger = logging.getLogger(__name__)

DEFAULT_TOOL_NAME = "scriptdist"

REMINDER = """\
------------------------------------------------------------------
Remember to push this directory to your source control system.
In fact, why not do that right now?
------------------------------------------------------------------"""


class CLIError(RuntimeError):
    pass


def create_tree(directory: str | Path) -> None:
    """
    Create the distribution directory and its `t` subdirectory.

    The directory must not exist yet: an earlier scaffold is never touched.
    """
    path = Path(directory)
    if path.exists():
        raise CLIError(
            f"Directory {path} already exists! Either delete it or\n"
            "move it out of the way, then rerun this program."
        )

    for d in (path, path / "t"):
        logger.info("Making directory %s...", d)
        try:
            d.mkdir(mode=0o755)
        except OSError as e:
            raise CLIError(f"Could not make [{d}]: {e.strerror or e}") from e


def _tool_name(argv0: str) -> str:
    name = os.path.basename(argv0)
    if not name or name in ("__main__.py", "-c"):
        return DEFAULT_TOOL_NAME
    return name


def _configure_logging(environ: Mapping[str, str]) -> None:
    level = logging.DEBUG if env_flag(environ, "SCRIPTDIST_DEBUG") else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)


def scaffold_cmd(args: argparse.Namespace, *, tool_name: str, environ: Mapping[str, str]) -> int:
    context = resolve_context(args.script, tool_name=tool_name, environ=environ)
    context = discover(context, select_discoverer())

    directory = Path(context.directory)
    create_tree(directory)

    templates = build_builtin_templates(context)
    result = render_distribution(context=context, templates=templates, destination_dir=directory)
    if result.failed:
        logger.warning("Could not write: %s", ", ".join(result.failed))

    write_manifest(directory)

    try:
        gitify(
            directory,
            message=f"Initial commit by {tool_name} {__version__}",
            tool_name=tool_name,
            environ=environ,
        )
    except GitError as e:
        logger.warning("git setup failed, continuing without it:\n%s", e)

    print(REMINDER)
    return 0


def _build_parser(prog: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=prog, description="Create a distribution directory around a single script")
    p.add_argument("script", help="Path to the script (it may not exist yet)")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: list[str] | None = None, *, prog: str | None = None, environ: Mapping[str, str] | None = None) -> int:
    env = os.environ if environ is None else environ
    tool_name = prog or _tool_name(sys.argv[0])

    parser = _build_parser(tool_name)
    args = parser.parse_args(argv)
    _configure_logging(env)

    try:
        return scaffold_cmd(args, tool_name=tool_name, environ=env)
    except (CLIError, RenderError, ConfigError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
