import sys

from timeliner.cli import main

sys.exit(main())
