"""
renderer.py

Responsibility: Materialize the distribution's files into the output tree.

Three passes, in this order:
- overrides: every file under the user's override directory, copied with
  %%SCAFFOLD_<KEY>%% placeholders substituted
- built-ins: every built-in template whose destination does not exist yet
  (an override of the same path always wins)
- the script itself, copied if it exists, otherwise written from a stub

Rules:
- Walk files in sorted order so the sequence of writes is reproducible.
- Unknown placeholder keys substitute to the empty string.
- A destination that cannot be written is reported and skipped; the run goes on.

This module intentionally does NOT know about git, manifests, or CLI parsing.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from scriptdist.config import ScaffoldContext
from scriptdist.templates import render_script_stub

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"%%SCAFFOLD_(.*?)%%", re.IGNORECASE)
PLACEHOLDER_BYTES_RE = re.compile(rb"%%SCAFFOLD_(.*?)%%", re.IGNORECASE)

SKIP_DIRS = frozenset({"CVS", ".svn", ".git"})


class RenderError(RuntimeError):
    pass


@dataclass
class RenderResult:
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    replacements: int = 0

    def merge(self, other: RenderResult) -> RenderResult:
        return RenderResult(
            written=self.written + other.written,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            replacements=self.replacements + other.replacements,
        )


def substitute_placeholders(text: str, values: Mapping[str, Any]) -> tuple[str, int]:
    """
    Replace every %%SCAFFOLD_<KEY>%% in `text` with `values[key.lower()]`.

    Missing keys (and None values) become "". Returns (new_text, count).
    """

    def _lookup(match: re.Match[str]) -> str:
        value = values.get(match.group(1).lower())
        return "" if value is None else str(value)

    return PLACEHOLDER_RE.subn(_lookup, text)


def substitute_placeholders_bytes(data: bytes, values: Mapping[str, Any]) -> tuple[bytes, int]:
    """
    Byte-level twin of `substitute_placeholders` for files that are not UTF-8.
    Substituted values are encoded as UTF-8; every other byte is kept.
    """

    def _lookup(match: re.Match[bytes]) -> bytes:
        value = values.get(match.group(1).decode("latin-1").lower())
        return b"" if value is None else str(value).encode("utf-8")

    return PLACEHOLDER_BYTES_RE.subn(_lookup, data)


def strip_prefix(path: str, prefix: str, sep: str) -> str:
    """
    Return `path` relative to `prefix`, where both use `sep` as the separator.
    A path that does not start with `prefix + sep` is returned unchanged.
    """
    head = prefix if prefix.endswith(sep) else prefix + sep
    if path.startswith(head):
        return path[len(head) :]
    return path


def find_template_files(root: str | Path) -> list[str]:
    """
    Return all regular files under root, in deterministic lexicographic order
    (relative path ordering). Version-control housekeeping directories
    (CVS, .svn, .git) are never descended into.
    """
    root = str(root)
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS]
        for name in filenames:
            full = os.path.join(dirpath, name)
            if os.path.isfile(full):
                files.append(full)
    files.sort(key=lambda p: os.path.relpath(p, root).replace(os.sep, "/"))
    return files


def _is_binary_file(path: Path) -> bool:
    """
    Best-effort: treat a file as binary if it cannot be decoded as UTF-8.
    """
    try:
        path.read_text(encoding="utf-8")
        return False
    except UnicodeDecodeError:
        return True


def copy_file(src: str | Path, dst: str | Path, values: Mapping[str, Any]) -> int | None:
    """
    Copy src to dst line by line, substituting placeholders.

    Line endings are preserved. Files that are not UTF-8 are substituted at
    the byte level, so their other bytes come through unchanged. Returns the
    number of replacements, or None when dst could not be written.
    """
    src_path = Path(src)
    dst_path = Path(dst)
    logger.debug("Opening input [%s] for output [%s]", src_path, dst_path)

    count = 0
    try:
        if _is_binary_file(src_path):
            with src_path.open("rb") as in_fh, dst_path.open("wb") as out_fh:
                for raw in in_fh:
                    raw, n = substitute_placeholders_bytes(raw, values)
                    count += n
                    out_fh.write(raw)
        else:
            with src_path.open("r", encoding="utf-8", newline="") as in_fh, dst_path.open(
                "w", encoding="utf-8", newline=""
            ) as out_fh:
                for line in in_fh:
                    line, n = substitute_placeholders(line, values)
                    count += n
                    out_fh.write(line)
        shutil.copymode(src_path, dst_path)
    except OSError as e:
        logger.warning("Could not write to [%s]: %s", dst_path, e)
        return None

    logger.info("Copied [%s] with %d replacements", src_path, count)
    return count


def materialize_overrides(
    *,
    rc_directory: str,
    destination_dir: str | Path,
    values: Mapping[str, Any],
    sep: str = os.sep,
) -> RenderResult:
    """
    Copy every file under rc_directory into destination_dir at the same
    relative path. Missing rc_directory is not an error.
    """
    result = RenderResult()
    if not os.path.isdir(rc_directory):
        return result

    dst_dir = Path(destination_dir)
    logger.info("Looking for local templates...")

    for src in find_template_files(rc_directory):
        rel = strip_prefix(src, rc_directory, sep)
        *parents, filename = rel.split(sep)

        out_dir = dst_dir.joinpath(*parents)
        if parents and not out_dir.is_dir():
            try:
                out_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
            except OSError as e:
                raise RenderError(f"Could not make [{out_dir}]: {e}") from e

        rel_posix = str(PurePosixPath(*parents, filename))
        count = copy_file(src, out_dir / filename, values)
        if count is None:
            result.failed.append(rel_posix)
        else:
            result.written.append(rel_posix)
            result.replacements += count

    return result


def materialize_builtins(
    *,
    templates: Mapping[str, str],
    destination_dir: str | Path,
    values: Mapping[str, Any],
) -> RenderResult:
    """
    Write each built-in template unless its destination already exists.
    Template keys are `/`-separated relative paths.
    """
    result = RenderResult()
    dst_dir = Path(destination_dir)

    for rel in sorted(templates):
        dst_path = dst_dir.joinpath(*PurePosixPath(rel).parts)

        if dst_path.exists():
            logger.info("Checking for file [%s]... already exists", rel)
            result.skipped.append(rel)
            continue

        logger.info("Adding file [%s]...", rel)
        text, count = substitute_placeholders(templates[rel], values)
        try:
            with dst_path.open("w", encoding="utf-8", newline="\n") as fh:
                fh.write(text)
        except OSError as e:
            logger.warning("Could not write to [%s]: %s", dst_path, e)
            result.failed.append(rel)
            continue

        result.written.append(rel)
        result.replacements += count

    return result


def place_script(*, context: ScaffoldContext, destination_dir: str | Path) -> RenderResult:
    """
    Put the script into the distribution: a copy of the original when it
    exists, a stub otherwise.
    """
    result = RenderResult()
    logger.info("Adding [%s]...", context.script)
    dst_path = Path(destination_dir) / context.script

    if os.path.exists(context.script_path):
        logger.info("Copying script...")
        count = copy_file(context.script_path, dst_path, context.placeholders())
        if count is None:
            result.failed.append(context.script)
            return result
        result.replacements += count
    else:
        logger.info("Using script template...")
        try:
            dst_path.write_text(render_script_stub(context.script), encoding="utf-8", newline="\n")
        except OSError as e:
            logger.warning("Could not write to [%s]: %s", dst_path, e)
            result.failed.append(context.script)
            return result

    result.written.append(context.script)
    return result


def render_distribution(
    *,
    context: ScaffoldContext,
    templates: Mapping[str, str],
    destination_dir: str | Path | None = None,
) -> RenderResult:
    """
    Run all three passes (overrides, built-ins, script) into destination_dir,
    which defaults to `context.directory`.
    """
    dst_dir = Path(destination_dir if destination_dir is not None else context.directory)
    values = context.placeholders()

    result = materialize_overrides(
        rc_directory=context.rc_directory,
        destination_dir=dst_dir,
        values=values,
        sep=context.dir_sep,
    )
    result = result.merge(materialize_builtins(templates=templates, destination_dir=dst_dir, values=values))
    return result.merge(place_script(context=context, destination_dir=dst_dir))
