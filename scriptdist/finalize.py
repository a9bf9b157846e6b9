"""
finalize.py

Responsibility: The steps that run once every file is in place.

- `write_manifest`: list every distributable file in MANIFEST, honoring the
  regexes in MANIFEST.SKIP
- `gitify`: init a git repo, add everything, make the initial commit

Both work on an explicit directory rather than the process's cwd.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Mapping

from scriptdist.config import env_flag

logger = logging.getLogger(__name__)

MANIFEST = "MANIFEST"
MANIFEST_SKIP = "MANIFEST.SKIP"


class GitError(RuntimeError):
    pass


def read_skip_patterns(path: str | Path) -> list[re.Pattern[str]]:
    """
    One regex per line; blank lines and `#` comments are ignored.
    A missing file means nothing is skipped.
    """
    p = Path(path)
    if not p.is_file():
        return []
    patterns: list[re.Pattern[str]] = []
    for raw in p.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            patterns.append(re.compile(line))
        except re.error as e:
            logger.warning("Ignoring bad %s pattern %r: %s", MANIFEST_SKIP, line, e)
    return patterns


def collect_manifest(directory: str | Path) -> list[str]:
    """
    Relative `/`-separated paths of every file under directory that no
    MANIFEST.SKIP pattern matches, sorted. MANIFEST itself is always listed.
    """
    root = Path(directory)
    patterns = read_skip_patterns(root / MANIFEST_SKIP)

    entries = {MANIFEST}
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            rel = (Path(dirpath) / name).relative_to(root).as_posix()
            if any(p.search(rel) for p in patterns):
                continue
            entries.add(rel)
    return sorted(entries)


def write_manifest(directory: str | Path) -> list[str]:
    logger.info("Creating %s...", MANIFEST)
    entries = collect_manifest(directory)
    (Path(directory) / MANIFEST).write_text("".join(f"{e}\n" for e in entries), encoding="utf-8", newline="\n")
    return entries


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> None:
    """
    Run a subprocess command, raising a GitError on failure.
    """
    try:
        subprocess.run(cmd, cwd=str(cwd), env=env, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except subprocess.CalledProcessError as e:
        raise GitError(f"Command failed: {' '.join(cmd)}\n\n{e.stdout}") from e


def _git_env(base_env: Mapping[str, str], name: str) -> dict[str, str]:
    """
    Commit identity falls back to the tool itself so the initial commit works
    on machines without a configured git user.
    """
    env = dict(base_env)
    env.setdefault("GIT_AUTHOR_NAME", name)
    env.setdefault("GIT_AUTHOR_EMAIL", f"{name}@example.invalid")
    env.setdefault("GIT_COMMITTER_NAME", name)
    env.setdefault("GIT_COMMITTER_EMAIL", f"{name}@example.invalid")
    return env


def gitify(
    directory: str | Path,
    *,
    message: str,
    tool_name: str = "scriptdist",
    environ: Mapping[str, str] | None = None,
) -> bool:
    """
    Create a git repository in directory and commit everything in it.

    Returns False (doing nothing) when SCRIPTDIST_SKIP_GIT is set or no git
    executable is on PATH.
    """
    base_env = os.environ if environ is None else environ
    if env_flag(base_env, "SCRIPTDIST_SKIP_GIT"):
        logger.info("SCRIPTDIST_SKIP_GIT is set; not creating a git repository")
        return False

    git = shutil.which("git", path=base_env.get("PATH"))
    if not git:
        logger.info("No git on PATH; not creating a git repository")
        return False

    workdir = Path(directory)
    env = _git_env(base_env, tool_name)
    _run([git, "init"], cwd=workdir, env=env)
    _run([git, "add", "."], cwd=workdir, env=env)
    _run([git, "commit", "-a", "-m", message], cwd=workdir, env=env)
    return True
