"""Task service HTTP API."""
