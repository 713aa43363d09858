import sys

from rutt.cli import main

sys.exit(main())
