"""sitepipe: a task runner for static sites with live reload."""

__version__ = "0.3.0"
