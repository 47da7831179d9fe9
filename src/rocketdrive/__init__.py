"""RocketDrive backup agent: incremental backup of local folders to Google Drive."""

__version__ = "1.0.0"
