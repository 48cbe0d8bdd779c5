"""Swift module for backup2surfsara.

- SwiftAuthClient: Verifies credentials and the backup container
"""
