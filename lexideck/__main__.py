"""
Entry point for running lexideck as a module.

Usage:
    python -m lexideck review
    python -m lexideck stats
    python -m lexideck --help
"""
from .cli import main

if __name__ == "__main__":
    main()
