"""Structured logging setup and contextual fields."""
