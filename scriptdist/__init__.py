"""
scriptdist package

This package turns a single script into a minimal distribution directory.

Key responsibilities are split across modules:
- `config.py`: resolve environment, rc file and script path into a `ScaffoldContext`
- `discovery.py` / `introspect.py`: best-effort dependency and minimum-Python discovery
- `templates.py`: the built-in distribution files as Jinja2 templates
- `renderer.py`: deterministic override/built-in/script materialization
- `finalize.py`: MANIFEST generation and git initialization
- `cli.py`: CLI entrypoint and orchestration (resolve -> discover -> render -> finalize)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.23.1"
