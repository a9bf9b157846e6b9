from __future__ import annotations

from scriptdist.cli import main

if __name__ == "__main__":
    raise SystemExit(main(prog="scriptdist"))
