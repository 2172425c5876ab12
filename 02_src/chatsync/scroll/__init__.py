"""ScrollPolicy module."""

from .policy import ScrollPolicy

__all__ = ["ScrollPolicy"]
