import sys

from adbwatch.cli import main

sys.exit(main())
