"""IO layer: caching."""
