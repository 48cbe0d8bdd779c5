"""Duplicity operations module for backup2surfsara.

This module handles everything that talks to duplicity:
- DuplicityCommand: Argument lists for each action
- DuplicityRunner: Runs duplicity with the exported environment
- Status: collection-status parsing and the last-backup check
- Exceptions: Backup-specific error types
"""
