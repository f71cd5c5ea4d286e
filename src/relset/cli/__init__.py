"""relset command-line interface."""
