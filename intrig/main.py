#!/usr/bin/env python3
"""
Main entry point for the Typer-based Intrig discovery CLI.

This delegates to the UI layer in intrig.ui.cli to keep the
console script mapping stable.
"""

from intrig.ui.cli import run as intrig_discovery


if __name__ == "__main__":
    intrig_discovery()
