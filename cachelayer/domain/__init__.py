"""Domain models, protocols and exceptions for the cache layer."""
