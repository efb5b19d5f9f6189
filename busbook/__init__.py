"""Bus ticket booking workflow: route search, seat selection, submission and history."""

__version__ = "1.0.0"
