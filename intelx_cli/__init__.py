"""Interactive command-line client for the Intelligence X API."""

__version__ = '1.0.0'
