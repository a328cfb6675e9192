"""CLI entry point for agentcolony."""

import sys

from agentcolony.cli import main

if __name__ == "__main__":
    sys.exit(main())
