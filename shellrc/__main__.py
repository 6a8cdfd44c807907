import sys

from shellrc.cli import main

sys.exit(main())
