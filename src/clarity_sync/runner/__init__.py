"""
CLI runner module.

Provides commands:
- sync: Review a window and apply the changes
- status: Report whether a window is in sync
- pending: Show or discard staged changes, or end the staging session
- backfill: Synchronize a range of months
- check: Test the FileMaker connection
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
