import sys

from wkimage.cli import main

sys.exit(main())
