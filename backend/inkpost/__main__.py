import sys

from inkpost.cli import main

sys.exit(main())
