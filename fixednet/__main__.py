import sys

from fixednet.cli import main

sys.exit(main())
