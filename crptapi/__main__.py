import sys

from crptapi.cli import main

sys.exit(main())
