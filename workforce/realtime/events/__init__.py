"""Domain-specific payload builders and publishers for the event bus."""
