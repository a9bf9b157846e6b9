"""Shared test fixtures for scriptdist tests."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Callable

import pytest

from scriptdist.config import ScaffoldContext


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., ScaffoldContext]:
    """Build a ScaffoldContext rooted in tmp_path, overriding any field."""

    def _make(script_path: str | Path | None = None, **overrides: Any) -> ScaffoldContext:
        path = str(script_path if script_path is not None else tmp_path / "foo.pl")
        script = Path(path).name
        home = str(tmp_path / "home")
        context = ScaffoldContext(
            script_path=path,
            script=script,
            directory=script + ".d",
            tool_name="scriptdist",
            home=home,
            rc_directory=str(Path(home) / ".scriptdist"),
            config_file=str(Path(home) / ".scriptdistrc"),
            date="Mon Oct 19 12:00:00 2026",
        )
        return dataclasses.replace(context, **overrides)

    return _make

