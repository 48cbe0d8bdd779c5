"""backup2surfsara: encrypted duplicity backups to a Swift object store."""

__version__ = "1.0.0"
