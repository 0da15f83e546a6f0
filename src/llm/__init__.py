"""Generation gateway clients."""
