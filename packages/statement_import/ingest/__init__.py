"""Readers and row parsers for uploaded statement files."""
