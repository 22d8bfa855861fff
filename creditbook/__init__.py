"""Credit Book: due-date alerts and scheduled payment notifications."""

__version__ = "0.1.0"
