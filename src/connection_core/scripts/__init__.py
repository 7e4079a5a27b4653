"""Operational scripts for Connection Core."""
