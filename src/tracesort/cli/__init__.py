"""tracesort command line interface."""
