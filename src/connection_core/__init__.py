"""Community membership, event lifecycle and notification dispatch core."""

__version__ = "0.1.0"
