"""Infrastructure layer: external services, persistence and the CLI."""
