"""beadboard - a terminal dashboard for beads."""

__version__ = "0.1.0"
