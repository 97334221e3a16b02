"""Task persistence."""
