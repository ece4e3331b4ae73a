"""MediaSync - imports Google Drive folders into the media catalog."""

__version__ = "0.1.0"
