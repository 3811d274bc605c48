"""Display sinks for controller state."""

from display.console import ConsoleDisplay

__all__ = ["ConsoleDisplay"]
