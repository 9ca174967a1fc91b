"""Logging, configuration and small helpers."""
