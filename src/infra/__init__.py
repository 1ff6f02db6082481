"""Process-wide logging and metrics plumbing."""
