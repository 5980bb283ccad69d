"""Per-user favorite shops."""
