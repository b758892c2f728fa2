"""Storage adapters for the scoring engine."""
