import sys

from .cli import EXIT_INTERRUPTED, main

try:
    sys.exit(main())
except KeyboardInterrupt:
    print("\nInterrupted", file=sys.stderr)
    sys.exit(EXIT_INTERRUPTED)
