"""Command line interface for the workflow graph runner."""
