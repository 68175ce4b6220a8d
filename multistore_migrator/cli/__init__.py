"""Command-line interface for the multi-store migrator."""
