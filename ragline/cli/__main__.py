"""Allow ``python -m ragline.cli`` execution."""

import sys

from ragline.cli.main import main

sys.exit(main())
