"""File formats, configuration and logging."""
