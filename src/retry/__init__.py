"""Cross-run retry queue and dead-letter log for failed items."""
