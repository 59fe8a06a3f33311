#!/usr/bin/env python3
"""CLI wrapper for folding sequence records with ensemblefold.

All implementation lives in :mod:`ensemblefold.cli`.
"""

import sys
from pathlib import Path

# Allow running from a checkout without installing the package
_SRC = Path(__file__).resolve().parent / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from ensemblefold.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
