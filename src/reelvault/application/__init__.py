"""Application layer: lifecycle services, caches and job handling."""
