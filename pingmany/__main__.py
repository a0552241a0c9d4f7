"""
Main entry point for pingmany.
"""
import sys

from pingmany.app import main

if __name__ == "__main__":
    sys.exit(main())
