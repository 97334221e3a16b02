"""Database models for the recurring task engine."""
