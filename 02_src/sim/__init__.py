"""Traffic simulator for the chat sync demo."""

from .sim import ISim, Sim

__all__ = ["ISim", "Sim"]
