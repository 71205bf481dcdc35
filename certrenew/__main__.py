"""Certrenew entry point when run as a module."""
import sys

from certrenew import main

if __name__ == '__main__':
    sys.exit(main.main())  # pragma: no cover
