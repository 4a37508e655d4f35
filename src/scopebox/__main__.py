"""Entry point for running the command line tools as a module.

Usage:
    python -m scopebox run app1.py app2.py
"""

import sys

from scopebox.cli import main

if __name__ == "__main__":
    sys.exit(main())
