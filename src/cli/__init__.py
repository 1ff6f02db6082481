"""Command line entrypoints for the filter and viewer processes."""
