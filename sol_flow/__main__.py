#!/usr/bin/env python3
"""
Command-line interface for sol-flow
"""

from .cli.main import run

if __name__ == "__main__":
    run()
