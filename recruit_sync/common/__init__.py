"""Shared logging and error handling helpers."""
