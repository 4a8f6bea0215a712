"""``cpb-ai`` command-line interface."""
