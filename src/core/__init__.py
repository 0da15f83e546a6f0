"""Domain models, error taxonomy and shared helpers."""
