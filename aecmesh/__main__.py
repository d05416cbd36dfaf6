"""Allow ``python -m aecmesh``."""

import sys

from aecmesh.cli import main

sys.exit(main())
