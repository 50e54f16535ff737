"""Task service: task records with a transactional job pipeline."""

__version__ = "0.1.0"
