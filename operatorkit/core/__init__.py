"""Process-wide settings and logging configuration."""
