"""paylog command-line interface."""
