"""Format constants, record types, paths and configuration."""
