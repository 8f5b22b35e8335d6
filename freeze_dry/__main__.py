# Allows the package to be run as a script using `python -m freeze_dry`

from __future__ import annotations

import sys

from freeze_dry.cli import main

if __name__ == "__main__":
    sys.exit(main())
