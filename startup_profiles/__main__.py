"""Allow ``python -m startup_profiles``."""

import sys

from .cli import main

sys.exit(main())
