#!/usr/bin/env python3
"""
Entry point for the catalog CLI.

Run with: python -m catalog
"""

from .cli import cli

if __name__ == '__main__':
    cli()
