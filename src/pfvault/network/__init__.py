"""HTTP client for the pfSense web UI."""
