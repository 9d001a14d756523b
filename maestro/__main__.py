"""Module entrypoint for ``python -m maestro``.

A thin wrapper around :func:`maestro.cli.main`: argument parsing and orchestration live in the CLI
module, and ``SystemExit(main())`` turns its return code into the process exit status. Equivalent to
the ``maestro`` console script.

Failure modes
-------------
- Argument errors: ``argparse`` raises ``SystemExit(2)`` and prints usage.
- ``MaestroError`` (invalid plan, failed pre-flight check, dependency cycle, failed orchestration after
  rollback): one ``[maestro] error: ...`` line on stderr and exit status 1.
- Anything else propagates with a stack trace.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
