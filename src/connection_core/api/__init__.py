"""HTTP API for Connection Core."""
