"""Thesis submission tracker: versioned submissions, adviser review and progress."""

__version__ = "1.0.0"
