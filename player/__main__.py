#!/usr/bin/env python3
"""
Entry point for the terminal player.

Run with: python -m player
"""

from .cli import cli

if __name__ == '__main__':
    cli()
