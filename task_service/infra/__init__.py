"""Infrastructure adapters: logging, metrics, database, counter store, job transport."""
