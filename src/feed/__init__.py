"""Source feed fetching, payload parsing and normalization."""
