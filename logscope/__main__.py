"""
logscope CLI Entry Point

This module allows running logscope as:
    python -m logscope [command] [options]
"""

from logscope.cli import main

if __name__ == "__main__":
    main()
