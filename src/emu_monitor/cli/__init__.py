"""
Monitor Command-Line Interface
==============================

This package provides the command-line front end of the monitor:

- **emumon eval**: evaluate one expression and print its value
- **emumon repl**: interactive monitor session

The tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["emumon"]
