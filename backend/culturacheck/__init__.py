"""CulturaCheck: Middle East cultural compliance advisor."""

__version__ = "0.1.0"
