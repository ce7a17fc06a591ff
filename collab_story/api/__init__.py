"""HTTP API for the collaborative story service."""
