"""Logging, metrics and date helpers."""
