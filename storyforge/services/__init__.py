"""Service layer for plans, writing statistics and gated story generation."""
