"""Allow running as `python -m wavconvert`."""

import sys

from wavconvert.cli import main

sys.exit(main())
