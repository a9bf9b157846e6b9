"""Tests for dependency discovery (selection, null backend, source backend)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from packaging.specifiers import SpecifierSet

from scriptdist.config import Dependency
from scriptdist.discovery import NullDiscoverer, discover, select_discoverer
from scriptdist.introspect import (
    MetadataError,
    SourceDiscoverer,
    imported_modules,
    lowest_version,
    read_script_metadata,
)


SCRIPT_WITH_METADATA = """\
#!/usr/bin/env python3
# /// script
# requires-python = ">=3.10"
# dependencies = [
#   "requests>=2.31",
#   "rich",
# ]
# ///
\"\"\"Fetch things.\"\"\"

import json
import os.path
import requests
import yaml
from rich.console import Console
from . import sibling
"""

# ---------------------------------------------------------------------------
# select_discoverer
# ---------------------------------------------------------------------------


class TestSelectDiscoverer:
    def test_packaging_available(self) -> None:
        assert isinstance(select_discoverer(), SourceDiscoverer)

    def test_packaging_missing(self) -> None:
        with patch("scriptdist.discovery.importlib.util.find_spec", return_value=None):
            assert isinstance(select_discoverer(), NullDiscoverer)


# ---------------------------------------------------------------------------
# discover
# ---------------------------------------------------------------------------


class TestDiscover:
    def test_null_keeps_defaults(self, tmp_path: Path, make_context) -> None:
        script = tmp_path / "foo.py"
        script.write_text("import requests\n", encoding="utf-8")
        ctx = discover(make_context(script), NullDiscoverer())
        assert ctx.modules == ()
        assert ctx.minimum_python_version == "3"

    def test_missing_script_keeps_defaults(self, tmp_path: Path, make_context) -> None:
        ctx = make_context(tmp_path / "not-written-yet.py")
        assert discover(ctx, SourceDiscoverer(distributions={})) is ctx

    def test_source_fills_context(self, tmp_path: Path, make_context) -> None:
        script = tmp_path / "fetch.py"
        script.write_text(SCRIPT_WITH_METADATA, encoding="utf-8")
        ctx = discover(make_context(script), SourceDiscoverer(distributions={}))
        assert ctx.minimum_python_version == "3.10"
        assert [d.module for d in ctx.modules] == ["requests", "rich", "yaml"]

    def test_failing_discoverer_keeps_defaults(self, tmp_path: Path, make_context) -> None:
        class Broken:
            def get_modules(self, path):
                raise TypeError("boom")

            def get_minimum_python(self, path):
                return "3.12"

        script = tmp_path / "foo.py"
        script.write_text("import requests\n", encoding="utf-8")
        ctx = make_context(script)
        assert discover(ctx, Broken()) is ctx


# ---------------------------------------------------------------------------
# introspection helpers
# ---------------------------------------------------------------------------


class TestReadScriptMetadata:
    def test_no_block(self) -> None:
        assert read_script_metadata("print('hi')\n") is None

    def test_block_parsed(self) -> None:
        data = read_script_metadata(SCRIPT_WITH_METADATA)
        assert data == {"requires-python": ">=3.10", "dependencies": ["requests>=2.31", "rich"]}

    def test_duplicate_blocks(self) -> None:
        block = "# /// script\n# dependencies = []\n# ///\n"
        with pytest.raises(MetadataError):
            read_script_metadata(block + block)

    def test_invalid_toml(self) -> None:
        with pytest.raises(MetadataError):
            read_script_metadata("# /// script\n# dependencies = [\n# ///\n")


class TestLowestVersion:
    def test_lower_bound(self) -> None:
        assert lowest_version(SpecifierSet(">=2.0,<3")) == "2.0"

    def test_compatible_release(self) -> None:
        assert lowest_version(SpecifierSet("~=1.4.2")) == "1.4.2"

    def test_wildcard(self) -> None:
        assert lowest_version(SpecifierSet("==3.*")) == "3"

    def test_upper_bound_only(self) -> None:
        assert lowest_version(SpecifierSet("<3")) is None

    def test_exclusive_lower_bound_is_not_a_pin(self) -> None:
        assert lowest_version(SpecifierSet(">3.8")) is None


class TestImportedModules:
    def test_source_order_and_dedup(self) -> None:
        source = "import b\nimport a.x\nfrom a import y\nfrom .local import z\n"
        assert imported_modules(source) == ["b", "a"]

    def test_not_python(self) -> None:
        with pytest.raises(SyntaxError):
            imported_modules("use strict;\nmy $x = 1;\n")


class TestSourceDiscoverer:
    def test_declared_versions_and_imports(self, tmp_path: Path) -> None:
        script = tmp_path / "fetch.py"
        script.write_text(SCRIPT_WITH_METADATA, encoding="utf-8")
        found = SourceDiscoverer(distributions={}).get_modules(script)
        assert found == [
            Dependency("requests", "2.31"),
            Dependency("rich", None),
            Dependency("yaml", None),
        ]

    def test_import_mapped_to_distribution(self, tmp_path: Path) -> None:
        script = tmp_path / "load.py"
        script.write_text("# /// script\n# dependencies = ['PyYAML>=6']\n# ///\nimport yaml\n", encoding="utf-8")
        found = SourceDiscoverer(distributions={"yaml": ["PyYAML"]}).get_modules(script)
        assert found == [Dependency("PyYAML", "6")]

    def test_perl_script_yields_nothing(self, tmp_path: Path) -> None:
        script = tmp_path / "foo.pl"
        script.write_text("#!/usr/bin/perl\nuse strict;\nprint 'hi';\n", encoding="utf-8")
        discoverer = SourceDiscoverer(distributions={})
        assert discoverer.get_modules(script) == []
        assert discoverer.get_minimum_python(script) is None

    def test_minimum_python_absent(self, tmp_path: Path) -> None:
        script = tmp_path / "plain.py"
        script.write_text("import os\n", encoding="utf-8")
        assert SourceDiscoverer(distributions={}).get_minimum_python(script) is None

    def test_invalid_requires_python(self, tmp_path: Path) -> None:
        script = tmp_path / "bad.py"
        script.write_text("# /// script\n# requires-python = 'three'\n# ///\n", encoding="utf-8")
        assert SourceDiscoverer(distributions={}).get_minimum_python(script) is None

    def test_exclusive_requires_python_is_ignored(self, tmp_path: Path) -> None:
        script = tmp_path / "strict.py"
        script.write_text("# /// script\n# requires-python = '>3.8'\n# ///\n", encoding="utf-8")
        assert SourceDiscoverer(distributions={}).get_minimum_python(script) is None

    @pytest.mark.parametrize("declared", ["5", "'requests'", "{ requests = '2' }"])
    def test_non_list_dependencies_ignored(self, tmp_path: Path, declared: str) -> None:
        script = tmp_path / "odd.py"
        script.write_text(f"# /// script\n# dependencies = {declared}\n# ///\nimport rich\n", encoding="utf-8")
        assert SourceDiscoverer(distributions={}).get_modules(script) == [Dependency("rich", None)]
