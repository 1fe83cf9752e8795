"""Core utilities: errors, logging, clocks."""
