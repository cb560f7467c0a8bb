"""Module entry point for running classindex as a package.

Allows: python -m classindex <command>
"""

from classindex.cli import main
import sys

if __name__ == '__main__':
    sys.exit(main())
