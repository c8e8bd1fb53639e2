"""Sortie - scenario evaluation harness for interactive coding assistants."""

__version__ = "0.1.0"
