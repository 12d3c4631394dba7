"""Remote drive navigation and transfer engine."""

__version__ = "0.1.0"
