"""Service toolkit: errors, logging, graceful shutdown, databases and app runner."""

__version__ = "0.1.0"