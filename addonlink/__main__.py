import sys

from addonlink.cli import main

sys.exit(main())
