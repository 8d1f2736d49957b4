"""Studently year-end rollover client."""

__version__ = "0.1.0"
