"""Repositories wrapping read-only queries."""
