"""Command line interface for releasegate."""
