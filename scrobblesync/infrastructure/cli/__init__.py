"""Command line interface for ScrobbleSync."""
