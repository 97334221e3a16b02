"""Recurring task generation and reconciliation engine."""
