"""LMS authentication and user-hierarchy backend."""

__version__ = "0.1.0"
