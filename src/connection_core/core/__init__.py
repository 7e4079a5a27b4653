"""Core configuration for Connection Core."""
