"""Sortie reporting - HTML dashboard generation."""

from sortie.reporting.dashboard import generate_dashboard, render_dashboard

__all__ = ["generate_dashboard", "render_dashboard"]
