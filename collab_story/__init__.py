"""Collaborative story service: one word at a time, woven into stories."""

__version__ = "0.1.0"
