"""ScrobbleSync - report every play to Last.fm exactly once."""

__version__ = "0.1.0"
