"""Core utilities: configuration, logging and clocks."""
