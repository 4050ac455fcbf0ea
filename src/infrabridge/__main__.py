"""Run one backend server: ``python -m infrabridge <backend>``.

The backend may also come from ``INFRABRIDGE_BACKEND``.
"""

from __future__ import annotations

import os
import sys

from infrabridge.backends import BACKEND_NAMES, get_backend
from infrabridge.server import serve


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    name = args[0] if args else os.environ.get("INFRABRIDGE_BACKEND", "").strip()
    if not name:
        print(f"Usage: python -m infrabridge <{'|'.join(BACKEND_NAMES)}>", file=sys.stderr)
        return 2
    try:
        backend = get_backend(name)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    return serve(backend)


if __name__ == "__main__":
    sys.exit(main())
