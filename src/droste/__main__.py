import sys

from droste.cli import main

sys.exit(main())
