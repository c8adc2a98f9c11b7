"""Image building, serialization and reading."""
