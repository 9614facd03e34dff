"""Command line interface for Sugarlift."""
