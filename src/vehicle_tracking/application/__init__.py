"""Application layer - analysis services (use cases)."""
