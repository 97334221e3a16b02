"""Recurrence services: date arithmetic, materialization, sweeps and mutations."""
