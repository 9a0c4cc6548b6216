"""Domain layer: value objects and exceptions."""
