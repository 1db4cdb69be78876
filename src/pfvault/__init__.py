"""pfvault: scheduled, envelope-encrypted pfSense configuration backups."""

__version__ = "0.1.0"
