"""Listening Circle - passwordless email-code authentication."""

__version__ = "0.1.0"
