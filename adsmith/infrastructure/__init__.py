"""Infrastructure layer: configuration, constants and persistence."""
