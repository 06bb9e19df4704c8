"""Command-line interface for the learning loop."""
