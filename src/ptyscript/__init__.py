"""ptyscript — record a terminal session through a pseudo-terminal."""

__version__ = "0.1.0"
