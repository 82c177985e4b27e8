"""Conversational workout tracking core: programs, sessions, sets and personal records."""

__version__ = "0.4.0"
