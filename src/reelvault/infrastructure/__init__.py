"""Infrastructure layer: persistence, filesystem, observability, lifecycle."""
