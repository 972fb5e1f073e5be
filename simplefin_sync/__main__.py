"""
Main entry point for running simplefin_sync as a module.

Usage:
    python -m simplefin_sync [options]
"""
import sys
from .sync import main

if __name__ == "__main__":
    sys.exit(main())
