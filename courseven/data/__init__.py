"""Data layer: Roble HTTP client, row mapping, session storage, repositories."""
