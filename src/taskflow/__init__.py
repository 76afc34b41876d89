"""taskflow: a personal task manager with dependencies and a focus queue."""

__version__ = "0.1.0"
