"""
Entry point for ``python -m relaunch``.
"""

from .cli import main

if __name__ == '__main__':
    main()
