"""Domain entities, repository contracts, aggregation, and use cases."""
