"""
vibex - Main entry point for python -m vibex
"""

from vibex.cli import main

if __name__ == "__main__":
    main()
