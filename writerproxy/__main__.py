# writerproxy/__main__.py
import sys

from writerproxy.cli import main

sys.exit(main())
