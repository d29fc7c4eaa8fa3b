"""Core module - session aggregation, lifecycle management and logging."""
