"""Service facade consumed by request-serving layers and the CLI."""
