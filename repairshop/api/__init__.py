"""HTTP API for the repair shop."""
