"""Infrastructure layer: configuration, persistence, HTTP clients and storage."""
