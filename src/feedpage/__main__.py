import sys

from feedpage.cli import main

sys.exit(main())
