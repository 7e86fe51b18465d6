import sys

from ntpclock.cli import main

sys.exit(main())
