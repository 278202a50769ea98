import sys

from dbfailover.cli import main

sys.exit(main())
