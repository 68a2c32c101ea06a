"""Infrastructure layer - configuration, logging, storage and upstream access."""
