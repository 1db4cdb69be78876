"""Core models, exceptions and backup storage for pfvault."""
