"""Frontends for pfvault."""
