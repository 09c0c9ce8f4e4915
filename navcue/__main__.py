"""Allow ``python -m navcue`` to run a simulated navigation session."""

from __future__ import annotations

import sys

from navcue.cli.main import main


if __name__ == "__main__":
    sys.exit(main())
