"""
templates.py

Responsibility: The fixed set of built-in distribution files, and the stub
used when the script to package does not exist yet.

Each entry is a Jinja2 template keyed by its `/`-separated path relative to
the distribution directory. `build_builtin_templates` renders the whole set
against a context and returns a fresh mapping; nothing here is mutated at
runtime.
"""

from __future__ import annotations

import json
import re
from types import MappingProxyType
from typing import Mapping

from jinja2 import Environment, StrictUndefined

from scriptdist.config import ScaffoldContext

CHANGES = """\
{{ version }} - {{ date }}
\t+ initial distribution created with {{ tool_name }}
"""

PYPROJECT_TOML = """\
[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = {{ script | quote_string }}
version = {{ version | quote_string }}
requires-python = {{ (">=" ~ minimum_python_version) | quote_string }}
{% if modules %}
dependencies = [
{% for dep in modules %}
    {{ dep.requirement | quote_string }},
{% endfor %}
]
{% else %}
dependencies = []
{% endif %}

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools]
script-files = [{{ script | quote_string }}]
packages = []
py-modules = []

[tool.pytest.ini_options]
testpaths = ["t"]
"""

MANIFEST_SKIP = r"""\.DS_Store
\.git
\.gitignore
\.releaserc
\.svn
\bCVS\b
__pycache__
\.py[cod]$
\.pytest_cache
\.egg-info
^build/
^dist/
{{ script | regex_escape }}-.*
MANIFEST\.bak
MANIFEST\.SKIP
"""

RELEASERC = """\
pypi_user {{ pypi_user }}
"""

GITIGNORE = """\
.DS_Store
__pycache__/
*.py[cod]
.pytest_cache/
build/
dist/
*.egg-info/
{{ script }}-*
"""

TEST_MANIFEST = """\
test_compile.py
test_docs.py
"""

TEST_COMPILE = '''\
"""The script is present and compiles."""

from pathlib import Path

SCRIPT = Path(__file__).resolve().parent.parent / {{ script | quote_string }}


def test_script_exists():
    assert SCRIPT.is_file(), "Script file is missing!"


def test_script_compiles():
    source = SCRIPT.read_text(encoding="utf-8")
    compile(source, str(SCRIPT), "exec")
'''

TEST_DOCS = '''\
"""Every Python source in the distribution carries a module docstring."""

import ast
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


def _is_python(path):
    if path.suffix == ".py":
        return True
    with path.open("rb") as fh:
        first = fh.readline()
    return first.startswith(b"#!") and b"python" in first


def _sources():
    found = []
    for path in sorted(ROOT.rglob("*")):
        rel = path.relative_to(ROOT)
        if any(part.startswith(".") or part == "__pycache__" for part in rel.parts):
            continue
        if path.is_file() and _is_python(path):
            found.append(path)
    return found


@pytest.mark.parametrize("path", _sources(), ids=lambda p: str(p.relative_to(ROOT)))
def test_module_docstring(path):
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    assert ast.get_docstring(tree), f"{path.name} has no module docstring"
'''

SCRIPT_STUB = '''\
#!/usr/bin/env python3
"""
{{ script }} - this script does something

Synopsis
--------

Description
-----------

Author
------

Copyright
---------
"""
'''

BUILTIN_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {
        "Changes": CHANGES,
        "pyproject.toml": PYPROJECT_TOML,
        "MANIFEST.SKIP": MANIFEST_SKIP,
        ".releaserc": RELEASERC,
        ".gitignore": GITIGNORE,
        "t/test_manifest": TEST_MANIFEST,
        "t/test_compile.py": TEST_COMPILE,
        "t/test_docs.py": TEST_DOCS,
    }
)


def quote_string(value: object) -> str:
    """
    Quote `value` as a double-quoted string literal that is valid both as a
    TOML basic string and as Python source.
    """
    return json.dumps(str(value), ensure_ascii=False).replace("\x7f", "\\u007f")


def _environment() -> Environment:
    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["regex_escape"] = re.escape
    env.filters["quote_string"] = quote_string
    return env


def build_builtin_templates(context: ScaffoldContext) -> dict[str, str]:
    """
    Render every built-in template against `context`.

    Returns a new dict keyed by relative path, in sorted path order.
    """
    env = _environment()
    variables = context.template_vars()
    return {path: env.from_string(BUILTIN_TEMPLATES[path]).render(**variables) for path in sorted(BUILTIN_TEMPLATES)}


def render_script_stub(script: str) -> str:
    return _environment().from_string(SCRIPT_STUB).render(script=script)
