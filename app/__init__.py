"""Feedback Hunter: multi-platform feedback discovery pipeline."""

__version__ = "0.1.0"
