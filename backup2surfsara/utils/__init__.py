"""Utility module for backup2surfsara.

This module provides cross-cutting utilities:
- Logging: Configured logging with secret redaction
- Validators: Validation of configuration values
- Timeparse: Duplicity intervals and reference dates
"""
