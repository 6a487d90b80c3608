import sys

from speedy.cli import main

sys.exit(main())
