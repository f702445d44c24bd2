"""promboard command line interface."""
