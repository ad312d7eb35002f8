"""Route group exports."""

from . import health, planning, tools

__all__ = ["health", "planning", "tools"]
