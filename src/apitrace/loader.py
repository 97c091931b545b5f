"""Run a Python program with apitrace recording active.

    python -m apitrace.loader script.py [args...]
    python -m apitrace.loader -m package.module [args...]

Recording is activated before the target's own code is imported, so
every httpx client the target creates goes through the shims.
Configuration comes from apitrace.yaml and APITRACE_* variables, which
``apitrace run`` sets for the child process.
"""

from __future__ import annotations

import runpy
import sys
from pathlib import Path

from apitrace.runtime import activate

USAGE = "usage: python -m apitrace.loader [-m module | script.py] [args...]"


def run_target(target: str, args: list[str], as_module: bool = False) -> None:
    """Execute the target as __main__ with sys.argv rewritten."""
    if as_module:
        sys.argv = [target, *args]
        runpy.run_module(target, run_name="__main__", alter_sys=True)
        return

    script = Path(target)
    sys.argv = [str(script), *args]
    sys.path.insert(0, str(script.resolve().parent))
    runpy.run_path(str(script), run_name="__main__")


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    as_module = False
    if args and args[0] == "-m":
        as_module = True
        args = args[1:]
    if not args:
        print(USAGE, file=sys.stderr)
        return 2

    activate()
    run_target(args[0], args[1:], as_module=as_module)
    return 0


if __name__ == "__main__":
    sys.exit(main())
