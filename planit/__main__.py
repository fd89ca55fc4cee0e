"""
Main entry point for running the package as a module.

Usage:
    python -m planit import-missions --csv planning.csv
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
