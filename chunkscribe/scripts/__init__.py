"""
Command-line entry points.

Design intent:
- Parse arguments, apply config overrides and report failures as exit codes.
"""
